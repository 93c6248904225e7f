from pathlib import Path

HELLO = """---
title: Hello World
date: 2024-01-02
tags: [python, Web Dev]
description: First post
---
Some *markdown* text.

```python
print("hi")
```
"""

SECOND = """---
title: Second <Post>
date: 2024-03-05
tags:
  - Python
slug: Custom Slug
ogTitle: OG Second
---
Second body with a [link](https://example.org).
"""

DRAFT = """---
title: Work in progress
date: 2024-05-01
draft: true
---
Not yet.
"""


def write_post(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


