# site_render/__init__.py
"""
SiteRender package initializer.
Предрендеринг SPA в статический HTML: точка входа CLI: ``site_render.cli:cli``.
"""
__version__ = "0.1.0"
