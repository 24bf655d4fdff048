"""
Format emitters. Each module exposes FORMAT, FILENAME and
emit(graph, tables) -> (code, filename); emitters never see each other.
"""
from typing import Callable, Dict, Tuple

from iacforge.emitters import cloudformation, pulumi_python, pulumi_typescript, terraform
from iacforge.mappings import MappingTables
from iacforge.models.artifact import IaCFormat
from iacforge.models.resource import ResourceGraph

EmitterFn = Callable[[ResourceGraph, MappingTables], Tuple[str, str]]

EMITTERS: Dict[IaCFormat, EmitterFn] = {
    m.FORMAT: m.emit for m in (terraform, cloudformation, pulumi_python, pulumi_typescript)
}

FILENAMES: Dict[IaCFormat, str] = {
    m.FORMAT: m.FILENAME for m in (terraform, cloudformation, pulumi_python, pulumi_typescript)
}


def get_emitter(fmt: IaCFormat) -> EmitterFn:
    return EMITTERS[IaCFormat(fmt)]
