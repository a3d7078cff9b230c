import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="xploitra",
    version="1.0.0",
    author="team-504",
    author_email="example@gmail.com",
    description="Automated web application vulnerability scanner (XSS, SQLi, directory traversal)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    packages=setuptools.find_packages(include=["xploitra", "xploitra.*"]),
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.31",
        "beautifulsoup4>=4.12",
        "selenium>=4.11",
        "webdriver-manager>=4.0",
        "rich>=13.0",
        "click>=8.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "responses>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "xploitra=xploitra.scanner.cli.runner:cli",
        ],
    },
)
