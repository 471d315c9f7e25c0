from typing import Any, Dict, List, Optional
import typer
import httpx

DEFAULT_API_URL = "http://127.0.0.1:8000/chat"
cli = typer.Typer(add_completion=False)

@cli.command()
def main(
    question: str = typer.Argument(None, help="Your question. If omitted, enter interactive mode."),
    user_id: Optional[str] = typer.Option("cli", help="User id the server remembers your Canvas token under"),
    api_url: str = typer.Option(DEFAULT_API_URL, help="Agent API URL"),
):
    history: List[Dict[str, Any]] = []
    if question is None:
        typer.echo("Chatting with your Canvas assistant. Type 'exit' to quit.\n")
        while True:
            try:
                q = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not q or q.lower() in {"exit", "quit"}:
                break
            history = _ask(q, history, api_url=api_url, user_id=user_id)
    else:
        _ask(question, history, api_url=api_url, user_id=user_id)

def _ask(q: str, history: List[Dict[str, Any]], *, api_url: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
    payload: Dict[str, Any] = {"message": q, "chat_history": history}
    if user_id:
        payload["user_id"] = user_id
    try:
        resp = httpx.post(api_url, json=payload, timeout=90.0)
        if resp.status_code >= 400:
            typer.secho(f"Error: {resp.status_code} {resp.text}", fg=typer.colors.RED)
            return history
        data = resp.json()
        typer.secho(data["message"], fg=typer.colors.GREEN)
        typer.echo("")
        return data.get("chat_history", history)
    except Exception as e:
        typer.secho(f"Client error: {e}", fg=typer.colors.RED)
        return history

if __name__ == "__main__":
    cli()
