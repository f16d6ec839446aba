from setuptools import setup, find_namespace_packages

setup(
    name="chainrig",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["chainrig*"]),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "tenacity>=8.0",
        "python-dotenv>=1.0",
        "jinja2>=3.0",
        "docker>=7.0",
        "requests>=2.26",
        "structlog>=23.1",
        "cryptography>=41.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chainrig=chainrig.CLI.main:main",
        ],
    },
)
