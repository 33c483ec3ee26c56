SUGGEST_SYSTEM = "你是一个帮助用户构建知识地图的助手，擅长关联概念和提供洞见。请保持回答简洁、有启发性。"

SUGGEST_USER = """
我正在构建一个概念地图，其中有以下内容的节点:
"{node_content}"

请提供5个相关概念或想法，这些概念可以与此节点相连接。简洁回答，每行一个概念，不需要额外解释。
"""
