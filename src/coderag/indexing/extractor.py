"""C# code unit extraction with tree-sitter.

Each type declaration yields a ``type_header`` unit (declaration line, fields,
properties and constructor signatures) and every method or constructor inside
it yields its own unit. Method bodies are not descended into.
"""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import tree_sitter_language_pack

from ..config.manager import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_INCLUDE_PATTERNS, _expand_patterns
from ..core.models import CodeUnit, UnitKind
from ..utils.file_utils import is_binary_file, normalize_rel_path, project_id_for, unit_id_for

logger = logging.getLogger(__name__)

# the C# grammar is registered as "csharp" in current packs, "c_sharp" in older ones
CSHARP_LANGUAGE_NAMES = ("csharp", "c_sharp")

TYPE_DECLARATIONS = {
    "class_declaration",
    "struct_declaration",
    "interface_declaration",
    "record_declaration",
    "record_struct_declaration",
}

GENERATED_SUFFIXES = (".g.cs", ".designer.cs", ".assemblyinfo.cs", ".g.i.cs")
GENERATED_NAMES = ("assemblyinfo.cs",)
GENERATED_PREFIXES = ("microsoft.net.test.sdk.",)
GENERATED_DIRS = {"obj", "bin"}

_WS_RE = re.compile(r"\s+")


def is_generated_file(rel_path: str) -> bool:
    """Build output and designer/source-generator files are never indexed."""
    lowered = rel_path.lower()
    name = lowered.rsplit("/", 1)[-1]
    if name.endswith(GENERATED_SUFFIXES) or name in GENERATED_NAMES or name.startswith(GENERATED_PREFIXES):
        return True
    return any(part in GENERATED_DIRS for part in lowered.split("/")[:-1])


def _match_any(path: str, globs: List[str]) -> bool:
    return any(fnmatch.fnmatch(path, g) for g in globs)


def iter_files(root: Path, cfg: Dict) -> Iterable[Path]:
    include_globs = cfg.get("include_globs", _expand_patterns(DEFAULT_INCLUDE_PATTERNS))
    exclude_globs = cfg.get("exclude_globs", _expand_patterns(DEFAULT_EXCLUDE_PATTERNS))
    max_kb = int(cfg.get("indexing", {}).get("max_file_size_kb", 512))

    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue
        rel = p.relative_to(root).as_posix()
        if _match_any(rel, exclude_globs) or is_generated_file(rel):
            continue
        if not _match_any(rel, include_globs):
            continue
        try:
            if (p.stat().st_size / 1024.0) > max_kb:
                logger.debug(f"Skipping {rel}: larger than {max_kb} KB")
                continue
        except OSError:
            continue
        if is_binary_file(p):
            continue
        yield p


def _get_csharp_parser():
    last_error: Optional[Exception] = None
    for name in CSHARP_LANGUAGE_NAMES:
        try:
            return tree_sitter_language_pack.get_parser(name)
        except (LookupError, ValueError) as e:
            last_error = e
    raise RuntimeError(f"No C# grammar in tree-sitter-language-pack: {last_error}")


def _text(node) -> str:
    return node.text.decode("utf-8", errors="replace") if node is not None else ""


def _one_line(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def _first_child(node, node_type: str):
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _attributes(node) -> List[str]:
    out = []
    for child in node.children:
        if child.type == "attribute_list":
            for attr in child.named_children:
                if attr.type == "attribute":
                    out.append(f"[{_one_line(_text(attr))}]")
    return out


def _parameter_types(parameter_list) -> List[str]:
    if parameter_list is None:
        return []
    out = []
    for param in parameter_list.named_children:
        if param.type != "parameter":
            continue
        type_node = param.child_by_field_name("type")
        out.append(_one_line(_text(type_node)) if type_node is not None else "unknown")
    return out


def _declaration_text(node, stop_at) -> str:
    """Source of ``node`` from its first non-attribute token up to ``stop_at``."""
    start = node.start_byte
    for child in node.children:
        if child.type != "attribute_list":
            start = child.start_byte
            break
    end = stop_at.start_byte if stop_at is not None else node.end_byte
    source = node.text
    return _one_line(source[start - node.start_byte : end - node.start_byte].decode("utf-8", errors="replace"))


@dataclasses.dataclass
class _TypeContext:
    name: str
    base_types: List[str]
    dependencies: List[str]

    @property
    def display(self) -> str:
        if self.base_types:
            return f"{self.name} : {', '.join(self.base_types)}"
        return self.name


class Extractor:
    """Abstract base class for code unit extraction."""

    def extract_project(self, root: Path, project_id: Optional[str] = None) -> List[CodeUnit]:
        raise NotImplementedError

    def extract_files(self, root: Path, rel_paths: Iterable[str], project_id: Optional[str] = None) -> List[CodeUnit]:
        raise NotImplementedError


class CSharpExtractor(Extractor):
    """tree-sitter based extractor for ``*.cs`` sources."""

    def __init__(self, cfg: Optional[Dict] = None, max_workers: Optional[int] = None):
        self.cfg = cfg or {}
        self.max_workers = max_workers or os.cpu_count() or 1
        exclude = self.cfg.get("exclude_globs", _expand_patterns(DEFAULT_EXCLUDE_PATTERNS))
        self._exclude_globs: List[str] = list(exclude)

    def extract_project(self, root: Path, project_id: Optional[str] = None) -> List[CodeUnit]:
        root = root.resolve()
        project_id = project_id or project_id_for(root)
        files = [p.relative_to(root).as_posix() for p in iter_files(root, self.cfg)]
        logger.info(f"Extracting units from {len(files)} files under {root}")
        return self._extract(root, files, project_id)

    def extract_files(self, root: Path, rel_paths: Iterable[str], project_id: Optional[str] = None) -> List[CodeUnit]:
        root = root.resolve()
        project_id = project_id or project_id_for(root)
        files = []
        for rel in sorted({normalize_rel_path(p) for p in rel_paths}):
            if is_generated_file(rel) or _match_any(rel, self._exclude_globs):
                continue
            if not (root / rel).is_file():
                logger.warning(f"Changed file {rel} no longer exists, skipping")
                continue
            files.append(rel)
        return self._extract(root, files, project_id)

    def _extract(self, root: Path, rel_paths: List[str], project_id: str) -> List[CodeUnit]:
        if not rel_paths:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(rel_paths))) as pool:
            # map() yields in input order
            per_file = list(pool.map(lambda rel: self.extract_file(root, rel, project_id), rel_paths))
        units = [u for file_units in per_file for u in file_units]
        logger.info(f"Extracted {len(units)} units from {len(rel_paths)} files")
        return units

    def extract_file(self, root: Path, rel_path: str, project_id: str) -> List[CodeUnit]:
        source = (root / rel_path).read_bytes()
        return self.extract_source(source, rel_path, project_id)

    def extract_source(self, source: bytes, rel_path: str, project_id: str) -> List[CodeUnit]:
        # parsers are not thread-safe, so each call gets its own
        tree = _get_csharp_parser().parse(source)
        walker = _UnitWalker(normalize_rel_path(rel_path), project_id)
        walker.walk(tree.root_node, namespace="", type_ctx=None)
        return walker.units


class _UnitWalker:
    def __init__(self, file_path: str, project_id: str):
        self.file_path = file_path
        self.project_id = project_id
        self.units: List[CodeUnit] = []

    def walk(self, node, namespace: str, type_ctx: Optional[_TypeContext]) -> None:
        for child in node.named_children:
            kind = child.type
            if kind == "namespace_declaration":
                name = _one_line(_text(child.child_by_field_name("name")))
                nested = f"{namespace}.{name}" if namespace and name else name or namespace
                body = child.child_by_field_name("body")
                if body is not None:
                    self.walk(body, nested, type_ctx)
            elif kind == "file_scoped_namespace_declaration":
                # applies to the following siblings, or to its own children in newer grammars
                namespace = _one_line(_text(child.child_by_field_name("name")))
                self.walk(child, namespace, type_ctx)
            elif kind in TYPE_DECLARATIONS:
                self._visit_type(child, namespace)
            elif kind in ("method_declaration", "constructor_declaration"):
                if type_ctx is not None:
                    self._emit_member(child, namespace, type_ctx)
            elif kind == "declaration_list":
                self.walk(child, namespace, type_ctx)

    def _visit_type(self, node, namespace: str) -> None:
        name = _one_line(_text(node.child_by_field_name("name")))
        base_list = _first_child(node, "base_list")
        base_types = [_one_line(_text(c)) for c in base_list.named_children] if base_list is not None else []

        body = node.child_by_field_name("body") or _first_child(node, "declaration_list")
        members = body.named_children if body is not None else []

        primary_params = _first_child(node, "parameter_list")
        if primary_params is not None and primary_params.named_children:
            dependencies = _parameter_types(primary_params)
        else:
            first_ctor = next((m for m in members if m.type == "constructor_declaration"), None)
            dependencies = _parameter_types(
                first_ctor.child_by_field_name("parameters") if first_ctor is not None else None
            )

        ctx = _TypeContext(name=name, base_types=base_types, dependencies=dependencies)
        self._emit_header(node, namespace, ctx, body, members)
        if body is not None:
            self.walk(body, namespace, ctx)

    def _emit_header(self, node, namespace: str, ctx: _TypeContext, body, members) -> None:
        declaration = _declaration_text(node, body)
        lines = [declaration, "{"]
        for member in members:
            if member.type == "field_declaration":
                lines.append(f"    {_one_line(_text(member))}")
        for member in members:
            if member.type == "property_declaration":
                lines.append(f"    {_one_line(_text(member))}")
        for member in members:
            if member.type == "constructor_declaration":
                signature = _declaration_text(member, member.child_by_field_name("body"))
                lines.append(f"    {signature.rstrip(';').rstrip()};")
        lines.append("}")
        header = "\n".join(lines)

        start_line = node.start_point[0] + 1
        # the declaration up to and including the opening brace
        end_point = body.start_point if body is not None else node.end_point
        keyword = node.type.replace("_declaration", "").replace("_", " ")
        self._add(
            namespace=namespace,
            ctx=ctx,
            member_name="",
            signature=f"{keyword} {ctx.display}",
            kind=UnitKind.TYPE_HEADER,
            start_line=start_line,
            end_line=end_point[0] + 1,
            body=header,
            attributes=_attributes(node),
        )

    def _emit_member(self, node, namespace: str, ctx: _TypeContext) -> None:
        kind = UnitKind.CONSTRUCTOR if node.type == "constructor_declaration" else UnitKind.METHOD
        body_node = node.child_by_field_name("body")
        self._add(
            namespace=namespace,
            ctx=ctx,
            member_name=_one_line(_text(node.child_by_field_name("name"))),
            signature=_declaration_text(node, body_node).rstrip(";").rstrip(),
            kind=kind,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            body=_text(node).strip(),
            attributes=_attributes(node),
        )

    def _add(
        self,
        namespace: str,
        ctx: _TypeContext,
        member_name: str,
        signature: str,
        kind: UnitKind,
        start_line: int,
        end_line: int,
        body: str,
        attributes: List[str],
    ) -> None:
        self.units.append(
            CodeUnit(
                id=unit_id_for(self.project_id, self.file_path, start_line),
                project_id=self.project_id,
                file_path=self.file_path,
                namespace=namespace,
                type_name=ctx.name,
                member_name=member_name,
                signature=signature,
                kind=kind,
                start_line=start_line,
                end_line=end_line,
                body=body,
                embedding_text=compose_embedding_text(
                    self.file_path, namespace, ctx.display, ctx.dependencies, attributes, body
                ),
                attributes=attributes,
                dependencies=list(ctx.dependencies),
                base_types=list(ctx.base_types),
            )
        )


def compose_embedding_text(
    file_path: str,
    namespace: str,
    type_display: str,
    dependencies: List[str],
    attributes: List[str],
    body: str,
) -> str:
    lines = [
        f"// File: {file_path}",
        f"// Namespace: {namespace}",
        f"// Type: {type_display}",
    ]
    if dependencies:
        lines.append(f"// Dependencies: {', '.join(dependencies)}")
    if attributes:
        lines.append(f"// Attributes: {', '.join(attributes)}")
    lines.append("")
    lines.append(body)
    return "\n".join(lines)


def make_extractor(cfg: Dict) -> Extractor:
    return CSharpExtractor(cfg)
