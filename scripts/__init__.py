import subprocess
import shutil
import os
import sys

def run_unit_tests():
    """Run unit tests in mysql_extended/tests."""
    print("Running unit tests...")
    result = subprocess.run([sys.executable, "-m", "pytest", "mysql_extended/tests"], check=False)
    sys.exit(result.returncode)

def run_integration_tests():
    """Run integration tests in tests/ against MYSQL_DATABASE_URL."""
    print("Running integration tests...")
    # Skipped automatically when no MySQL server is reachable
    result = subprocess.run([sys.executable, "-m", "pytest", "tests"], check=False)
    sys.exit(result.returncode)

def run_all_tests():
    """Run all tests (unit + integration)."""
    print("Running all tests...")
    result = subprocess.run([sys.executable, "-m", "pytest"], check=False)
    sys.exit(result.returncode)

def clean_project():
    """Remove build and test leftovers like .pytest_cache, *.egg-info and __pycache__."""
    folders_to_remove = [
        ".pytest_cache",
        "build",
        "mysql_extended.egg-info",
        "mysql_extended/__pycache__",
        "mysql_extended/execution/__pycache__",
        "mysql_extended/statement/__pycache__",
        "mysql_extended/tests/__pycache__",
        "tests/__pycache__"
    ]

    for root, dirs, files in os.walk("."):
        if "__pycache__" in dirs:
            folders_to_remove.append(os.path.join(root, "__pycache__"))

    print("Cleaning up project...")
    for folder in set(folders_to_remove):
        if not os.path.exists(folder):
            continue
        try:
            shutil.rmtree(folder)
            print(f"Removed: {folder}")
        except OSError as e:
            print(f"Failed to remove {folder}: {e}")

    print("Cleanup complete.")
