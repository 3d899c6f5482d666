"""
Guix Rendering.

Turns resolved package definitions into a Guix Scheme module, or into
JSON for consumption by other tools.

Module shape:
    (define-module (carguix serde) ...)

    (define-public rust-serde-1.0.104
      (package
        (name "rust-serde")
        (version "1.0.104")
        ...))
"""

from __future__ import annotations

import json
import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from .core.types import PackageDefinition, kebab

# SPDX identifiers -> (guix licenses) variables
LICENSES = {
    "MIT": "license:expat",
    "Apache-2.0": "license:asl2.0",
    "BSD-2-Clause": "license:bsd-2",
    "BSD-3-Clause": "license:bsd-3",
    "ISC": "license:isc",
    "MPL-2.0": "license:mpl2.0",
    "Zlib": "license:zlib",
    "Unlicense": "license:unlicense",
    "CC0-1.0": "license:cc0",
    "0BSD": "license:bsd-0",
    "LGPL-2.1": "license:lgpl2.1",
    "LGPL-3.0": "license:lgpl3",
    "GPL-2.0": "license:gpl2",
    "GPL-3.0": "license:gpl3",
}

_LICENSE_SEPARATORS = re.compile(r"\s+(?:OR|AND|WITH)\s+|/|[()]")

MODULE_HEADER = """(define-module ({module})
  #:use-module (guix packages)
  #:use-module (guix download)
  #:use-module (guix gexp)
  #:use-module (guix build-system cargo)
  #:use-module ((guix licenses) #:prefix license:))
"""


def scheme_string(value: str) -> str:
    """Quote a Python string as a Scheme string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def default_module_name(crate_name: str) -> str:
    return f"carguix {kebab(crate_name)}"


def license_expression(spdx: Optional[str]) -> str:
    """
    Translate an SPDX expression to a Guix license value.

    Unknown identifiers are dropped; ``#f`` when nothing is recognised.
    """
    if not spdx:
        return "#f"
    names = []
    for token in _LICENSE_SEPARATORS.split(spdx):
        token = token.strip().removesuffix("+").removesuffix("-only").removesuffix("-or-later")
        guix_name = LICENSES.get(token)
        if guix_name and guix_name not in names:
            names.append(guix_name)
    if not names:
        return "#f"
    if len(names) == 1:
        return names[0]
    return f"(list {' '.join(names)})"


def _render_source(package: PackageDefinition) -> List[str]:
    parsed = urlparse(package.source)
    if parsed.scheme == "file":
        path = url2pathname(parsed.path)
        checkout = scheme_string(f"{package.name}-{package.version}-checkout")
        return [
            f"    (source (local-file {scheme_string(path)} {checkout}",
            "                        #:recursive? #t))",
        ]
    return [
        "    (source",
        "      (origin",
        "        (method url-fetch)",
        f"        (uri {scheme_string(package.source)})",
        '        (file-name (string-append name "-" version ".tar.gz"))',
        "        (sha256",
        f"          (base32 {scheme_string(package.hash)}))))",
    ]


def render_package(package: PackageDefinition) -> str:
    """Render one ``define-public`` form."""
    lines = [
        f"(define-public {package.variable_name}",
        "  (package",
        f"    (name {scheme_string(package.name)})",
        f"    (version {scheme_string(package.version)})",
    ]
    lines.extend(_render_source(package))
    lines.append(f"    (build-system {package.build_system})")

    if package.cargo_inputs:
        inputs = [f'("rust-{name}" ,rust-{name})' for name in package.cargo_inputs]
        lines.append("    (arguments")
        lines.append("      `(#:cargo-inputs")
        lines.append(f"        ({inputs[0]}")
        for entry in inputs[1:]:
            lines.append(f"         {entry}")
        lines[-1] += ")))"

    lines.append(f"    (home-page {scheme_string(package.home_page or '')})")
    lines.append(f"    (synopsis {scheme_string(package.synopsis or '')})")
    lines.append(f"    (description {scheme_string(package.description or '')})")
    lines.append(f"    (license {license_expression(package.license)})))")
    return "\n".join(lines)


def render_module(module_name: str, packages: Iterable[PackageDefinition]) -> str:
    """
    Render a Guix module defining every package.

    Args:
        module_name: Space-separated module name, e.g. ``gnu packages crates-io``.
        packages: Definitions to include.

    Returns:
        Scheme source text. Definitions are sorted by package name so the
        output does not depend on resolution order.
    """
    ordered = sorted(packages, key=lambda p: p.package_name)
    parts = [MODULE_HEADER.format(module=module_name)]
    parts.extend(render_package(p) for p in ordered)
    return "\n".join(parts) + "\n"


def render_json(packages: Iterable[PackageDefinition]) -> str:
    """Dump definitions as a JSON array sorted by package name."""
    ordered = sorted(packages, key=lambda p: p.package_name)
    return json.dumps([p.model_dump(mode="json") for p in ordered], indent=2) + "\n"

