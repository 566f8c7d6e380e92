from setuptools import setup, find_namespace_packages

setup(
    name="lazylinq",
    version="0.1.0",
    description="Lazy, single-pass LINQ-style sequence queries",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["lazylinq", "lazylinq.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
