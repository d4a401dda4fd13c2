"""YAML loading for joint-named documents.

PyYAML's ``SafeLoader`` follows YAML 1.1, where ``yes``, ``no``, ``on`` and
``off`` are booleans. Joint names such as ``on`` would then arrive as
``True`` and could never be matched against the joint model. Controller,
joint-model and joint-state files are read with ``JointDocumentLoader``
instead, which only treats ``true``/``false`` as booleans (the YAML 1.2
core schema).

Integers are left to the loader; ``coerce_name`` turns an integer joint
name such as ``1`` back into text.
"""

from __future__ import annotations

import re
from typing import IO, Any

import yaml

__all__ = ["JointDocumentLoader", "load_document"]

_BOOL_TAG = "tag:yaml.org,2002:bool"


class JointDocumentLoader(yaml.SafeLoader):
    """``SafeLoader`` with YAML 1.2 booleans."""


JointDocumentLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
JointDocumentLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def load_document(stream: str | IO[str]) -> Any:
    """Parse one YAML document with ``JointDocumentLoader``.

    Raises:
        yaml.YAMLError: If the text is not valid YAML.
    """
    return yaml.load(stream, Loader=JointDocumentLoader)
