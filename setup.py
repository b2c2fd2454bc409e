# setup.py
from setuptools import setup, find_packages

setup(
    name="alignertrack",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "python-dateutil",
        "PySide6",
        "matplotlib",
        "reportlab",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-qt",
        ],
    },
    entry_points={
        "console_scripts": [
            "alignertrack=alignertrack.main:run_wizard",
        ],
        "gui_scripts": [
            "alignertrack-gui=alignertrack.ui:main",
        ],
    },
)
