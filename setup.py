import os

from setuptools import find_packages, setup

README = os.path.join(os.path.dirname(__file__), "README.md")


def readme() -> str:
    with open(README, encoding="utf-8") as f:
        return f.read()


setup(
    name="values_to_json_schema",
    version="1.0.0",
    description="Generate JSON Schema from annotated Helm values files",
    long_description=readme(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Code Generators",
        "Topic :: System :: Systems Administration",
        "Intended Audience :: Developers",
    ],
    keywords="helm values json schema yaml kubernetes",
    license="MIT",
    packages=find_packages(),
    python_requires=">=3.11",
    install_requires=[
        "click>=8.0.0",
        "jinja2>=3.0.0",
        "PyYAML>=6.0",
        "ruamel.yaml>=0.18.0",
        "httpx>=0.27.0",
        "platformdirs>=4.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0,<9.1",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "values-to-json-schema=values_to_json_schema.values_to_json_schema:values_to_json_schema",
        ],
    },
    zip_safe=False,
)
