# Sphinx configuration for the kennel-automation API docs.
#
# Build with:  pip install -e ".[docs]" && sphinx-build -b html docs docs/_build/html

import os
import sys

sys.path.insert(0, os.path.abspath("../src"))

from kennel_automation import __version__  # noqa: E402

project = "Kennel Automation"
author = "Kennel Automation contributors"
copyright = "2025, " + author
release = __version__
version = ".".join(__version__.split(".")[:2])

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx_autodoc_typehints",
]

exclude_patterns = ["_build"]
html_theme = "sphinx_rtd_theme"

autodoc_member_order = "bysource"
autodoc_default_options = {
    "members": True,
    "show-inheritance": True,
}
autodoc_typehints = "description"

napoleon_google_docstring = True
napoleon_numpy_docstring = False
