from django.db import connection


def check_database() -> None:
    """Run a trivial query; raises DatabaseError (or ImproperlyConfigured) when storage is unusable."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
