"""
DPF adapters for external collaborators (DNS TXT root discovery).
"""

from .dns_txt import format_txt_record, lookup_txt, parse_txt_record, resolve_root, select_root

__all__ = ["format_txt_record", "lookup_txt", "parse_txt_record", "resolve_root", "select_root"]
