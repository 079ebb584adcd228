"""Acting account resolution."""

import logging
from dataclasses import dataclass
from typing import Protocol

from collab_sessions.domain.errors import AccountNotFound, NoActiveAccount
from collab_sessions.domain.models import AccountRecord
from collab_sessions.services.app_settings import AppSettingsService

logger = logging.getLogger(__name__)


class AccountRepository(Protocol):
    """Read-only persistence interface for accounts."""

    def get_account(self, account_id: int) -> AccountRecord | None:
        """Return an account by id, if present."""

    def get_first_account(self) -> AccountRecord | None:
        """Return the account with the lowest id, if any exist."""

    def get_accounts(self, account_ids: list[int]) -> dict[int, AccountRecord]:
        """Return the accounts that exist among the given ids."""


@dataclass
class AccountService:
    """Resolves which account a request acts as."""

    repository: AccountRepository
    app_settings_service: AppSettingsService

    def resolve_acting_account(self) -> int:
        """Return the active account id, auto-healing a stale selection.

        A stored selection is used while it still names an existing account.
        Otherwise the lowest-id account is selected and persisted. Raises
        ``NoActiveAccount`` when no account exists at all.
        """
        current = self.app_settings_service.get_active_account_id()
        if current is not None and self.repository.get_account(current):
            return current

        fallback = self.repository.get_first_account()
        if fallback is None:
            raise NoActiveAccount()
        self.app_settings_service.set_active_account_id(fallback.id)
        logger.info(
            "Active account %s is unavailable, selected account %s",
            current,
            fallback.id,
        )
        return fallback.id

    def select_account(self, account_id: int) -> AccountRecord:
        """Make an existing account the active one."""
        account = self.repository.get_account(account_id)
        if account is None:
            raise AccountNotFound()
        self.app_settings_service.set_active_account_id(account.id)
        return account

    def display_names(self, account_ids: list[int]) -> dict[int, str | None]:
        """Return display names for the given accounts."""
        if not account_ids:
            return {}
        accounts = self.repository.get_accounts(sorted(set(account_ids)))
        return {
            account_id: account.display_name
            for account_id, account in accounts.items()
        }
