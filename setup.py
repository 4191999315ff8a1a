from setuptools import setup, find_packages


setup(
    name="packager-mcp",
    version="0.1.9",
    packages=find_packages(include=["packager_mcp", "packager_mcp.*"]),
    description="MCP server for deployment packaging: archive, compress and sign files.",
    author="packager-mcp contributors",
    python_requires=">=3.10",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "brotli>=1.1.0",
        "mcp>=1.9.0,<2",
        "anyio>=4.5",
    ],
    entry_points={
        "console_scripts": [
            "packager-mcp=packager_mcp.cli:main",
        ]
    },
)
