from spotify_mcp.mcp.server import main

main()
