"""Addressing of a single property inside a project."""

from dataclasses import dataclass
from typing import ClassVar, Self


@dataclass(slots=True, frozen=True, order=True)
class PropertyRef:
    """Address of a property: the node id and the property key.

    The textual form is ``"<node_id>:<prop_key>"``, which is also how ``ref``
    properties store their link target.
    """

    node_id: str
    prop_key: str

    SEPARATOR: ClassVar[str] = ":"

    def __str__(self) -> str:
        return f"{self.node_id}{self.SEPARATOR}{self.prop_key}"

    @classmethod
    def parse(cls, text: object) -> Self | None:
        """Parse ``"node:prop"``.

        Only the first two segments are used, so ``"a:b:c"`` addresses ``a:b``.

        Returns:
            The parsed reference, or None when the text is not a string, has no
            separator, or either side is empty.

        """
        if not isinstance(text, str) or cls.SEPARATOR not in text:
            return None
        node_id, prop_key = text.split(cls.SEPARATOR)[:2]
        if not node_id or not prop_key:
            return None
        return cls(node_id=node_id, prop_key=prop_key)
