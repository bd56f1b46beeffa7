# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Pipeline: collector -> type builder -> ABI resolver -> validator -> emitter.

Each stage fails per item: an item with a diagnostic is dropped from later
stages while the rest keep going, so one run reports every problem. The run
as a whole is fail-closed: any diagnostic means no bundle, and `hand_off`
never calls the emitter.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Optional, Sequence

from .abi_resolver import AbiResolver, OwnershipHints, ResolvedItem
from .collector import DEFAULT_EXPORT_MARKERS, CollectResult, ExportItem, collect_exports
from .core.diagnostics import Diagnostic
from .core.errors import InternalFault
from .core.layout import LayoutEngine
from .core.types_core import TypeTable
from .emitters.base import EmissionBundle, Emitter
from .emitters.capabilities import CapabilityTable
from .logging import get_logger
from .native.ast import NativeModule
from .recognizers import RecognizerSet
from .type_builder import TypeModelBuilder
from .validator import CompatibilityValidator

logger = get_logger(__name__)


@dataclass
class PipelineResult:
	ok: bool
	items: list[ResolvedItem] = field(default_factory=list)
	diagnostics: list[Diagnostic] = field(default_factory=list)
	bundle: Optional[EmissionBundle] = None
	collected: list[ExportItem] = field(default_factory=list)
	table: Optional[TypeTable] = None
	layouts: Optional[LayoutEngine] = None


def _process(
	builder: TypeModelBuilder, resolver: AbiResolver, item: ExportItem
) -> tuple[Optional[ResolvedItem], list[Diagnostic]]:
	ty, diags = builder.build_item(item)
	if ty is None:
		return None, diags
	return resolver.resolve_item(item, ty)


def run_pipeline(
	module: NativeModule,
	capabilities: CapabilityTable,
	*,
	word_bits: int = 64,
	workers: int = 1,
	export_markers: Sequence[str] = DEFAULT_EXPORT_MARKERS,
	hints: Optional[OwnershipHints] = None,
	recognizers: Optional[RecognizerSet] = None,
) -> PipelineResult:
	"""
	Resolve every exportable item of `module` against one capability table.

	Output (items and diagnostics) follows collection order for any number
	of workers. Raises InternalFault when a stage breaks an invariant.
	"""
	collected: CollectResult = collect_exports(module, export_markers=export_markers)
	table = TypeTable()
	layouts = LayoutEngine(word_bits=word_bits)
	builder = TypeModelBuilder(module, table, word_bits=word_bits, recognizers=recognizers)
	resolver = AbiResolver(capabilities=capabilities, layouts=layouts, hints=dict(hints or {}))

	items = collected.items
	if workers > 1 and len(items) > 1:
		with ThreadPoolExecutor(max_workers=workers) as pool:
			outcomes = list(pool.map(partial(_process, builder, resolver), items))
	else:
		outcomes = [_process(builder, resolver, it) for it in items]
	for name, path in resolver.unused_hints():
		logger.warning("ownership hint for %s at `%s` matched no raw pointer slot", name, path)

	diagnostics: list[Diagnostic] = list(collected.diagnostics)
	resolved: list[ResolvedItem] = []
	for r, item_diags in outcomes:
		diagnostics.extend(item_diags)
		if r is not None:
			resolved.append(r)

	report = CompatibilityValidator(capabilities, layouts, table).validate(resolved)
	diagnostics.extend(report.diagnostics)

	ok = not diagnostics
	bundle: Optional[EmissionBundle] = None
	if ok:
		bundle = EmissionBundle(
			items=tuple(report.items),
			capabilities=capabilities,
			word_bits=word_bits,
			nominals=table.nominals(),
		)
	logger.info(
		"%s: %d item(s) collected, %d resolved, %d diagnostic(s), target %s",
		module.name,
		len(items),
		len(resolved) if ok else 0,
		len(diagnostics),
		capabilities.target,
	)
	return PipelineResult(
		ok=ok,
		items=list(report.items) if ok else [],
		diagnostics=diagnostics,
		bundle=bundle,
		collected=list(items),
		table=table,
		layouts=layouts,
	)


def hand_off(result: PipelineResult, emitter: Emitter) -> Any:
	"""Give a successful run's bundle to `emitter`; failed runs emit nothing."""
	if not result.ok or result.bundle is None:
		logger.info("not emitting: run failed with %d diagnostic(s)", len(result.diagnostics))
		return None
	if emitter.target != result.bundle.target:
		raise InternalFault(
			message=f"bundle resolved for target `{result.bundle.target}` handed to emitter `{emitter.target}`",
			where="hand_off",
		)
	logger.debug("emitting %d item(s) for %s", len(result.bundle.items), emitter.target)
	return emitter.emit(result.bundle)


__all__ = ["PipelineResult", "hand_off", "run_pipeline"]
