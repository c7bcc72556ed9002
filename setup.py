from setuptools import setup, find_namespace_packages

setup(
    name="shelf_companion",
    version="0.1.0",
    packages=find_namespace_packages(include=['shelf', 'shelf.*', 'shelf_cli', 'shelf_cli.*']),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "Click",
        "SQLAlchemy>=2.0",
        "requests",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "shelf=shelf_cli.main:main",
        ],
    },
)
