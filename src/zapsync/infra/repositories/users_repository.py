"""Users repository - session phone to active local user.

Uses raw SQL with psycopg2 (no ORM).
"""

from psycopg2.extensions import cursor as PgCursor


def find_active_user_id_by_phone(cur: PgCursor, phone: str) -> str | None:
    """Return the id of an active user whose profile matches a phone.

    Matches profiles.phone exactly or any element of profiles.wa_phones.

    Args:
        cur:   Database cursor.
        phone: Digits-only phone number.

    Returns:
        User id as string, or None when no active user matches.
    """
    cur.execute(
        """
        SELECT u.id
        FROM users u
        JOIN profiles p ON p.user_id = u.id
        WHERE u.is_active
          AND (
              p.phone = %s
              OR COALESCE(p.wa_phones, '[]'::jsonb) @> jsonb_build_array(%s::text)
          )
        ORDER BY u.created_at
        LIMIT 1
        """,
        (phone, phone),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None
