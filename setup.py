from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="insight-dash",
    version="1.0.0",
    author="Tech Lead",
    description="Business analytics backend: tabular ingestion, KPIs, chart shaping and AI insights.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Office/Business :: Financial :: Spreadsheet",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.109.0",
        "uvicorn[standard]>=0.27.0",
        "python-multipart>=0.0.9",
        "pandas>=2.2.0",
        "numpy>=1.26.0",
        "openpyxl>=3.1.2",
        "xlrd>=2.0.1",
        "groq>=0.4.0",
        "plotly>=5.18.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.3",
        "pydantic-settings>=2.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.4",
            "pytest-asyncio>=0.23.3",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "insight-dash=insight_dash.main:start",
        ],
    },
)
