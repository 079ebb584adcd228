"""Supabase-backed account lookups."""

from dataclasses import dataclass

from supabase import Client

from collab_sessions.domain.models import AccountRecord
from collab_sessions.services.accounts import AccountRepository


@dataclass
class SupabaseAccountRepository(AccountRepository):
    """Supabase implementation for reading accounts."""

    client: Client

    def get_account(self, account_id: int) -> AccountRecord | None:
        """Return an account by id, if present."""
        response = (
            self.client.table("accounts")
            .select("id, display_name")
            .eq("id", account_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _account_from_row(response.data[0])

    def get_first_account(self) -> AccountRecord | None:
        """Return the account with the lowest id."""
        response = (
            self.client.table("accounts")
            .select("id, display_name")
            .order("id")
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _account_from_row(response.data[0])

    def get_accounts(self, account_ids: list[int]) -> dict[int, AccountRecord]:
        """Return existing accounts keyed by id."""
        if not account_ids:
            return {}
        response = (
            self.client.table("accounts")
            .select("id, display_name")
            .in_("id", account_ids)
            .execute()
        )
        accounts = [_account_from_row(row) for row in response.data or []]
        return {account.id: account for account in accounts}


def _account_from_row(row: dict[str, object]) -> AccountRecord:
    return AccountRecord(id=int(row["id"]), display_name=row.get("display_name"))
