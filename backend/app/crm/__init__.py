"""CRM collaborator used by flow actions."""

from .mutator import CrmError, SqlCrmMutator, get_crm_mutator, normalize_phone, phones_match

__all__ = ["CrmError", "SqlCrmMutator", "get_crm_mutator", "normalize_phone", "phones_match"]
