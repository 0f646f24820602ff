# Sphinx configuration file

import os
import sys
sys.path.insert(0, os.path.abspath('../src'))

from kit_engine import __version__  # noqa: E402

project = 'Kit Engine'
copyright = '2026, Kit Engine contributors'
author = 'Kit Engine contributors'
release = __version__

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
    'sphinx_autodoc_typehints',
]

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

html_theme = 'sphinx_rtd_theme'

# Autodoc settings
autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'exclude-members': '__weakref__'
}
autodoc_typehints = 'description'

# Kit lifecycle docstrings use Google style only.
napoleon_google_docstring = True
napoleon_numpy_docstring = False

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'pydantic': ('https://docs.pydantic.dev/latest', None),
}
