"""User-facing strings shown or spoken by the app."""

CONTENT_MISSING = "未能提取到內容，請檢查文件是否清晰。(Could not extract content, please check your files)"
SPEECH_OUTPUT_UNAVAILABLE = "你的裝置不支持語音功能 (Speech output is not available on this device)"
SPEECH_INPUT_UNAVAILABLE = "你的裝置不支持語音識別功能 (Speech recognition is not available on this device)"

ASSISTANT_GREETING = "你好！我是你的默書小助手。準備好了嗎？點擊播放按鈕開始吧！"
SESSION_FINISHED = "恭喜你！完成了所有默書內容！🎉"
CHAT_EMPTY_REPLY = "加油！"
CHAT_FALLBACK = "出了點小問題，我們繼續努力！"

# Spoken before an idiom's meaning
MEANING_PREFIX = "意思是："
