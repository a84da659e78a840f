"""xref-grapher: cross-module call graphs for Erlang code via Core Erlang."""

__version__ = "0.1.0"

from xref_grapher.cerl.parser import parse_module
from xref_grapher.exceptions import CompileError, CoreParseError, XrefError
from xref_grapher.extractor import extract_cross_refs
from xref_grapher.ignore import DEFAULT_IGNORED_MODULES, IgnoreFilter
from xref_grapher.models.call import (
    Call,
    DynAllCall,
    DynFunctionCall,
    DynModuleCall,
    ExtractionResult,
    StaticCall,
    Unimplemented,
)
from xref_grapher.pipeline import PipelineOutput, XrefPipeline
from xref_grapher.renderer import GraphRenderer

__all__ = [
    "Call",
    "CompileError",
    "CoreParseError",
    "DEFAULT_IGNORED_MODULES",
    "DynAllCall",
    "DynFunctionCall",
    "DynModuleCall",
    "ExtractionResult",
    "GraphRenderer",
    "IgnoreFilter",
    "PipelineOutput",
    "StaticCall",
    "Unimplemented",
    "XrefError",
    "XrefPipeline",
    "extract_cross_refs",
    "parse_module",
]
