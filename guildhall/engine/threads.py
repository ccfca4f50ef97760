"""
guildhall.engine.threads — Reply Tree Reconstruction
=====================================================

Replies are stored flat with an optional ``parent_reply_id``.  This module
rebuilds the nested discussion from one topic's replies.

Pure calculation — the source reply objects are wrapped, never mutated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

__all__ = ["ReplyNode", "build_reply_tree"]


class _Reply(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def parent_reply_id(self) -> str | None: ...


R = TypeVar("R", bound=_Reply)


@dataclass(eq=False, slots=True)
class ReplyNode(Generic[R]):
    reply: R
    children: list[ReplyNode[R]] = field(default_factory=list)


def build_reply_tree(replies: Sequence[R]) -> list[ReplyNode[R]]:
    """Return the forest of root nodes for *replies*.

    A reply becomes a root when it has no parent or when its parent isn't
    in *replies* (e.g. cut off by a page boundary).  Children and roots
    keep the order of the input list.

    Parent cycles are not detected.  Replies caught in one are attached to
    each other and so never reachable from a root.
    """
    nodes: dict[str, ReplyNode[R]] = {r.id: ReplyNode(r) for r in replies}
    roots: list[ReplyNode[R]] = []

    for reply in replies:
        node = nodes[reply.id]
        parent = nodes.get(reply.parent_reply_id) if reply.parent_reply_id else None
        if parent is not None:
            parent.children.append(node)
        else:
            roots.append(node)
    return roots
