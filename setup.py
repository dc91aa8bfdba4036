# setup.py
from setuptools import setup, find_packages

setup(
    name="site-render",
    version="0.1.0",
    description="Предрендеринг SPA в статический HTML через headless Chromium",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"site_render.report": ["templates/*.j2"]},
    install_requires=[
        "click>=8.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "soupsieve>=2.5",
        "lxml>=4.9",
        "Jinja2>=3.1",
        "playwright>=1.40",
        "watchfiles>=0.21",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-render=site_render.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
