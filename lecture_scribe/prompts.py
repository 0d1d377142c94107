"""Prompt text sent to the generative backend."""

UNTITLED_SESSION = "未命名講座"

ERROR_CORRECTION_TABLE = """
【學術術語修正對照表】
- 上升緊繃 -> 上身緊繃 | 水路法會 -> 水陸法會
- 海英三昧 -> 海印三昧 | 產眾 -> 禪眾
- 阿賴還是 -> 阿賴耶識 | 氣理 -> 契理
- 法稱提出形象視為有垢論 -> 法稱出形象虛偽有垢論
- 骯髒氣承認形象是為有垢論 -> 寶藏寂承認形象虛偽有垢論
- 中部著重在「中觀瑜伽」中和學派 -> 寂護著重在「中觀瑜伽」綜合學派
- 無形象知識論 -> 無形相知識論 | 新意識 -> 心意識
- 末那是思量名 -> 末那是思量義
- 釋迦摩尼 -> 釋迦牟尼 | 維摩詰 -> 維摩詰
"""


def transcription_system_instruction(course_name: str) -> str:
    return f"""
你是一位具備深厚學術功底的「{course_name}」領域紀錄專家。

核心任務：
1. **精準轉錄**：將音檔轉化為文字，嚴禁濃縮。
2. **術語校對**：結合上傳的參考文件，修正專有名詞（如梵文譯名、佛教術語）。
3. **角色識別**：必須區分「老師：」與「學生 1：」、「學生 2：」等發言者。
4. **格式**：重要術語或結論以 **粗體** 標示。

請輸出 JSON 格式：
{{
  "title": "正式標題",
  "content": "逐字稿全文"
}}
"""


def transcription_user_prompt(session_title: str) -> str:
    return f"講座主題：{session_title}。請參考專業對照表進行校正：{ERROR_CORRECTION_TABLE}"


def notes_system_instruction(course_name: str) -> str:
    return (
        f"請為「{course_name}」課程內容生成精煉且具深度的學術筆記，"
        "使用 Markdown 格式，包含重點摘要、邏輯分析與專有名詞解釋。"
    )


def notes_user_prompt(title: str, content: str) -> str:
    return f"主題：{title}\n\n內容：\n{content}"


def default_session_title(course_name: str, month_day: str) -> str:
    """Title suggested before the user types one, e.g. ``"03/14 禪修專題 課程紀錄"``."""
    return f"{month_day} {course_name} 課程紀錄"


TRANSCRIPT_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "content": {"type": "STRING"},
    },
    "required": ["title", "content"],
}
