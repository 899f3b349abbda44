from setuptools import find_packages, setup

setup(
    name="llm-structured-stream",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "fastapi",
        "httpx",
        "json-repair",
        "jsonschema",
        "pydantic>=2",
        "PyYAML",
        "structlog",
    ],
    extras_require={
        "test": [
            "hypothesis",
            "pytest",
            "pytest-asyncio",
            "pytest-httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "structured-stream=structured_stream.cli:main",
        ],
    },
    description="Incremental extraction of array items from streamed structured LLM output.",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
