from rulebuilder.view.state import ViewState

__all__ = ["ViewState"]
