from scmlink.scm.git.adapter import GitAdapter
from scmlink.scm.git.parser import GitLogParser, parse_blame, parse_log

__all__ = ["GitAdapter", "GitLogParser", "parse_blame", "parse_log"]
