#!/usr/bin/env python3
"""
Smart Debugger MCP Server

A Model Context Protocol server that sends Jenkins build console logs to a Groq
chat-completion model and returns its debugging suggestions in the Smart Debugger
analysis block. Supports stdio and HTTP transports, plus a one-shot CLI mode for
analysing a local log file.
"""

import asyncio
import io
import json
import sys
from typing import Optional
from mcp.server.models import InitializationOptions
from mcp.server import NotificationOptions, Server
import mcp.types as types
from jenkins_tools import JenkinsAPI, LogAnalysisClient, SmartDebugger
from models import SUPPORTED_MODELS, SmartDebuggerSettings
from config import config, logger

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uvicorn

SERVER_NAME = "smart-debugger"
SERVER_VERSION = "1.0.0"

server = Server(SERVER_NAME)

app = FastAPI(
    title="Smart Debugger",
    description="LLM-powered debugging suggestions for Jenkins build logs",
    version=SERVER_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

class ToolCallRequest(BaseModel):
    tool_name: str
    arguments: dict = {}

class ToolCallResponse(BaseModel):
    success: bool
    result: str = ""
    error: Optional[str] = None

class SmartDebuggerMCPServer:
    def __init__(self):
        self.jenkins_api = JenkinsAPI()
        self.client = LogAnalysisClient()
        self.default_settings = SmartDebuggerSettings(
            api_token=config.GROQ_API_KEY or None,
            selected_model=config.GROQ_MODEL
        )

    def settings_for(self, arguments: dict) -> SmartDebuggerSettings:
        """Per-call settings; arguments override the server defaults."""
        token = arguments.get("apiToken") or self.default_settings.api_token
        model = arguments.get("model") or self.default_settings.selected_model
        return SmartDebuggerSettings(api_token=token, selected_model=model)

    def analyze_build_log(self, log_text: str, arguments: dict) -> str:
        step = SmartDebugger(self.settings_for(arguments), client=self.client)
        out = io.StringIO()
        step.perform(log_text, out)
        return out.getvalue()

    def analyze_jenkins_build(self, jenkins_url: str, arguments: dict) -> str:
        logger.info("Analyzing Jenkins build", jenkins_url=jenkins_url)
        build_logs = self.jenkins_api.fetch_build_logs_from_url(jenkins_url)
        return self.analyze_build_log(build_logs.logText, arguments)

smart_debugger_mcp = SmartDebuggerMCPServer()

_MODEL_ARGUMENT = {
    "type": "string",
    "description": "Model to use: " + ", ".join(
        f"{option.value} ({option.display_name})" for option in SUPPORTED_MODELS
    )
}
_TOKEN_ARGUMENT = {
    "type": "string",
    "description": "Groq API token. Defaults to the server's GROQ_API_KEY"
}

@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return [
        types.Tool(
            name="list_models",
            description="Lists the chat-completion models the Smart Debugger can use.",
            inputSchema={"type": "object", "properties": {}}
        ),
        types.Tool(
            name="analyze_build_log",
            description="Sends console log text (first 4000 characters) to the LLM and returns its debugging suggestions as a numbered list.",
            inputSchema={
                "type": "object",
                "properties": {
                    "logText": {
                        "type": "string",
                        "description": "The raw console log text to analyze"
                    },
                    "model": _MODEL_ARGUMENT,
                    "apiToken": _TOKEN_ARGUMENT
                },
                "required": ["logText"]
            }
        ),
        types.Tool(
            name="analyze_jenkins_build",
            description="Fetches the console log of a Jenkins build and returns LLM debugging suggestions for it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "jenkinsUrl": {
                        "type": "string",
                        "description": "Full Jenkins build URL (e.g., 'https://jenkins.example.com/job/MyPipeline/123/')"
                    },
                    "model": _MODEL_ARGUMENT,
                    "apiToken": _TOKEN_ARGUMENT
                },
                "required": ["jenkinsUrl"]
            }
        )
    ]

@server.call_tool()
async def handle_call_tool(name: str, arguments: dict | None) -> list[types.TextContent]:
    """Dispatch an MCP tool call to the Smart Debugger."""
    if arguments is None:
        arguments = {}

    try:
        if name == "list_models":
            models = [option.model_dump() for option in SUPPORTED_MODELS]
            return [types.TextContent(type="text", text=json.dumps(models, indent=2))]

        elif name == "analyze_build_log":
            # Blocking HTTP work stays off the event loop
            result = await asyncio.to_thread(
                smart_debugger_mcp.analyze_build_log, arguments["logText"], arguments
            )
            return [types.TextContent(type="text", text=result)]

        elif name == "analyze_jenkins_build":
            result = await asyncio.to_thread(
                smart_debugger_mcp.analyze_jenkins_build, arguments["jenkinsUrl"], arguments
            )
            return [types.TextContent(type="text", text=result)]

        else:
            raise ValueError(f"Unknown tool: {name}")

    except Exception as e:
        logger.error("Tool call failed", tool=name, error=str(e))
        return [types.TextContent(type="text", text=f"Error: {str(e)}")]

@app.get("/")
async def root():
    """Service banner"""
    return {"message": "Smart Debugger Server", "status": "running", "version": SERVER_VERSION}

@app.get("/health")
async def health_check():
    """Liveness plus whether a default Groq token is configured"""
    return {"status": "healthy", "apiTokenConfigured": bool(config.GROQ_API_KEY)}

@app.post("/tools/call")
async def call_tool_http(request: ToolCallRequest) -> ToolCallResponse:
    try:
        result = await handle_call_tool(request.tool_name, request.arguments)

        if result and len(result) > 0:
            return ToolCallResponse(
                success=True,
                result=result[0].text
            )
        else:
            return ToolCallResponse(
                success=False,
                error="No result returned from tool"
            )

    except Exception as e:
        logger.error("HTTP tool call failed", tool=request.tool_name, error=str(e))
        return ToolCallResponse(
            success=False,
            error=str(e)
        )

@app.get("/tools/list")
async def list_tools_http():
    try:
        tools = await handle_list_tools()
        return {
            "tools": [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "inputSchema": tool.inputSchema
                }
                for tool in tools
            ]
        }
    except Exception as e:
        logger.error("Failed to list tools", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

async def run_stdio_server():
    """Serve the Smart Debugger tools over MCP stdio"""
    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=SERVER_NAME,
                server_version=SERVER_VERSION,
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                )
            )
        )

async def run_http_server(host: str = "0.0.0.0", port: int = 8000):
    """Serve the Smart Debugger tools over HTTP"""
    uvicorn_config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_level="info"
    )

    uvicorn_server = uvicorn.Server(uvicorn_config)
    await uvicorn_server.serve()

def analyze_log_file(path: str, model: Optional[str] = None, out=None) -> str:
    """Analyze a console log saved on disk and print the Smart Debugger block."""
    with open(path, encoding="utf-8", errors="replace") as f:
        log_text = f.read()
    arguments = {"model": model} if model else {}
    step = SmartDebugger(smart_debugger_mcp.settings_for(arguments), client=smart_debugger_mcp.client)
    return step.perform(log_text, out or sys.stdout)

async def main():
    """Serve over stdio or HTTP, or analyze one log file and exit"""
    import argparse

    parser = argparse.ArgumentParser(description="Smart Debugger Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol to use (default: stdio)"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind HTTP server (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for HTTP server (default: 8000)"
    )
    parser.add_argument(
        "--log-file",
        help="Analyze this console log file once and exit instead of serving"
    )
    parser.add_argument(
        "--model",
        help="Model for --log-file analysis (default: GROQ_MODEL)"
    )

    args = parser.parse_args()

    if args.log_file:
        logger.info("Analyzing log file", path=args.log_file)
        analyze_log_file(args.log_file, model=args.model)
    elif args.transport == "http":
        logger.info("Starting Smart Debugger server with HTTP transport", host=args.host, port=args.port)
        await run_http_server(host=args.host, port=args.port)
    else:
        logger.info("Starting Smart Debugger server with stdio transport")
        await run_stdio_server()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
