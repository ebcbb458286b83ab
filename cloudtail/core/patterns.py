import re
from typing import Callable, Optional

from cloudtail.exceptions import PatternCompileError


StreamNamePredicate = Callable[[str], bool]


def glob_to_regex(pattern: str) -> str:
    """
    Convert a shell style glob into an anchored regular expression.  Only ``*``
    and ``?`` are special; everything else matches literally.
    """
    escaped = re.escape(pattern)
    escaped = escaped.replace(r'\*', '.*').replace(r'\?', '.')
    return f'^{escaped}$'


def compile_pattern(pattern: Optional[str], is_regex: bool = False) -> StreamNamePredicate:
    """
    Compile a log stream name pattern into a predicate.

    Note:
        Globs must match the whole stream name, but regular expressions are
        searched for anywhere in the name.  ``ERR`` as a regex matches
        ``my-ERR-stream``; as a glob it matches only ``ERR``.

    Args:
        pattern: the glob or regular expression.  If empty, everything matches.

    Keyword Args:
        is_regex: if ``True``, treat ``pattern`` as a regular expression

    Raises:
        PatternCompileError: ``pattern`` is not a valid regular expression

    Returns:
        A callable that takes a stream name and returns ``True`` if it matches.
    """
    if not pattern:
        return lambda name: True
    source = pattern if is_regex else glob_to_regex(pattern)
    try:
        regex = re.compile(source)
    except re.error as e:
        raise PatternCompileError(pattern, str(e)) from e
    if is_regex:
        return lambda name: regex.search(name) is not None
    return lambda name: regex.match(name) is not None
