import os
import sys


def add_project_root_to_path():
    project_root = os.path.abspath(os.path.dirname(__file__))
    if project_root not in sys.path:
        sys.path.append(project_root)
        print(f"Added {project_root} to sys.path")


if __name__ == "__main__":
    add_project_root_to_path()

    from api.config import settings
    from ecod_pg.db_adapter import PostgresAdapter

    print("--- Initializing curation tables ---")

    adapter = PostgresAdapter(settings.DATABASE_URL, settings.DB_MIN_CONN, settings.DB_MAX_CONN)
    try:
        adapter.init_tables()

        print("\n--- SUCCESS ---")
        print("Curation sessions, decisions, status, locks and PDB metadata cache are in place.")
        print("You can now run 'run_api.py'.")

    except Exception as e:
        print(f"An error occurred during database initialization: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        adapter.close()
