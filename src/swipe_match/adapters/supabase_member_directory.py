"""Supabase lookup of active group members."""

from dataclasses import dataclass
from uuid import UUID

from postgrest.types import CountMethod
from supabase import Client

from swipe_match.adapters.supabase_errors import store_errors
from swipe_match.services.rounds import MemberDirectory


@dataclass
class SupabaseMemberDirectory(MemberDirectory):
    """Counts active rows in the externally managed ``group_members`` table."""

    client: Client

    def count_active_members(self, group_id: UUID) -> int:
        with store_errors("count_active_members"):
            response = (
                self.client.table("group_members")
                .select("user_id", count=CountMethod.exact)
                .eq("group_id", str(group_id))
                .eq("status", "active")
                .execute()
            )
        if response.count is not None:
            return response.count
        return len(response.data or [])
