"""
Code generation: export workflows as standalone Python programs.

- emitter: generate_workflow_code and ExportedWorkflow
- runtime: standard-library support code embedded in every export
"""

from pystepflow.codegen.emitter import ExportedWorkflow, generate_workflow_code, step_function_names

__all__ = ["ExportedWorkflow", "generate_workflow_code", "step_function_names"]
