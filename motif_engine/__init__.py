"""motif_engine - 节点图编辑器的执行与状态同步核心"""

__version__ = "0.1.0"
