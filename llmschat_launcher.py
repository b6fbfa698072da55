"""
Entry script for PyInstaller builds.

PyInstaller expects a top-level script without package-relative imports.
This launcher simply delegates to the package entry point defined in llmschat.main.
"""

from llmschat.main import main


if __name__ == "__main__":
    main()
