from .sample_flows import SAMPLE_FLOWS, get_sample_flow, list_sample_flows

__all__ = ["SAMPLE_FLOWS", "get_sample_flow", "list_sample_flows"]
