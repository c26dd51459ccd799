from __future__ import annotations

import re
from typing import TYPE_CHECKING, Set

from autotransaction.exception import AutoTransactionError

if TYPE_CHECKING:
    from autotransaction.base.interface import BaseInterface

PLACEHOLDER = re.compile(r"\$(?:(?P<position>\d+)|(?P<name>[a-z][a-z0-9_]*))")


def convert_sql_params(query: str, interface: BaseInterface) -> str:
    """Rewrite `$name` and `$1` placeholders into the paramstyle of the
    interface the query will run on.

    A query uses one style or the other; mixing them is an error.
    """
    styles: Set[str] = set()

    def substitute(match: re.Match) -> str:
        name = match.group("name")
        if name is None:
            styles.add("positional")
            return interface.POSITIONAL_SUB
        styles.add("keyword")
        return interface.KEYWORD_SUB.format(name=name)

    converted = PLACEHOLDER.sub(substitute, query)
    if len(styles) > 1:
        raise AutoTransactionError(
            "Cannot mix $name and $1 placeholders in one query"
        )
    return converted
