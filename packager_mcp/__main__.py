from packager_mcp.cli import main

main()
