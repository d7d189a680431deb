"""Disease catalog queries against Supabase PostgreSQL."""
import logging
from typing import List, Optional

from supabase import AsyncClient, acreate_client

from config import SUPABASE_URL, SUPABASE_KEY, DISEASES_TABLE
from models.disease import DiseaseRecord, SortKey

logger = logging.getLogger(__name__)


class DiseaseStoreError(Exception):
    """Raised when the record store cannot answer a query."""


async def create_supabase_client(
    supabase_url: Optional[str] = SUPABASE_URL,
    supabase_key: Optional[str] = SUPABASE_KEY,
) -> AsyncClient:
    """
    Create the async Supabase client shared by the store and the auth service.

    Raises:
        ValueError: If Supabase credentials are missing
    """
    if not supabase_url or not supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
    client = await acreate_client(supabase_url, supabase_key)
    logger.info("Supabase client created")
    return client


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DiseaseStore:
    """Read-only access to the disease catalog table."""

    def __init__(self, client: AsyncClient, table_name: str = DISEASES_TABLE):
        """
        Args:
            client: Async Supabase client
            table_name: Name of the table holding disease rows
        """
        self.client = client
        self.table_name = table_name
        logger.info(f"Initialized DiseaseStore with table: {table_name}")

    async def query(
        self,
        name_substring: Optional[str] = None,
        sort_key: SortKey = SortKey.NAME,
        ascending: bool = True,
    ) -> List[DiseaseRecord]:
        """
        Fetch diseases whose name contains ``name_substring``, ordered by ``sort_key``.

        Args:
            name_substring: Case-insensitive substring filter; None or "" returns all rows
            sort_key: Column to order by
            ascending: Sort direction

        Returns:
            Matching records in store order (possibly empty)

        Raises:
            DiseaseStoreError: If the query fails or returns malformed rows
        """
        sort_key = SortKey(sort_key)
        try:
            query = self.client.table(self.table_name).select("*")

            if name_substring:
                query = query.ilike("name", f"%{escape_like(name_substring)}%")

            query = query.order(sort_key.value, desc=not ascending)

            result = await query.execute()
            records = [DiseaseRecord.from_row(row) for row in (result.data or [])]
        except Exception as e:
            logger.error(
                f"Error fetching diseases (term={name_substring!r}, sort={sort_key.value}, "
                f"ascending={ascending}): {e}",
                exc_info=True,
            )
            raise DiseaseStoreError(f"Failed to fetch diseases: {e}") from e

        logger.info(
            f"Fetched {len(records)} diseases (term={name_substring!r}, "
            f"sort={sort_key.value}, ascending={ascending})"
        )
        return records
