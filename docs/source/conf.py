import os
import sys
sys.path.insert(0, os.path.abspath('../..'))  # points to repo root

# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = 'Academic Rooms Service'
copyright = '2025, Academic Administration Team'
author = 'Academic Administration Team'
release = '1.0.0'

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",   # numpy-style docstrings in rooms_service
    "sphinx.ext.viewcode",
    "sphinx.ext.autosummary",
]
autosummary_generate = True

# rooms_service.database builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

templates_path = ['_templates']
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'alabaster'
html_static_path = ['_static']
