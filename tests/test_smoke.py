def test_smoke_imports():
    """Very minimal smoke test to ensure basic modules import without errors."""
    import importlib

    for mod in [
        "agent.core",
        "agent.errors",
        "agent.extractors",
        "agent.model_client",
        "cli.config",
        "cli.main",
        "webapp.backend",
        "webapp.pages",
    ]:
        importlib.import_module(mod)


def test_agent_with_offline_client():
    from agent.core import EyeCareAgent
    from agent.model_client import ModelClient

    class EchoClient(ModelClient):
        def generate(self, messages, *, generation=None):
            return f"You said: {messages[-1]['content']}"

    agent = EyeCareAgent(model_client=EchoClient())
    reply = agent.ask_question("How often should I get my eyes checked?")
    assert reply == "You said: How often should I get my eyes checked?"
    assert isinstance(agent.get_myths(), list)
