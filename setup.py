from setuptools import setup, find_packages

setup(
    name="klang",
    version="0.1.0",
    description="klang — a minimal imperative language: tokenizer, parser and tree-walking interpreter",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="klang Project",
    python_requires=">=3.9",
    packages=find_packages(),
    entry_points={
        "console_scripts": [
            "klang=klang.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Interpreters",
    ],
)
