"""
Dictation Buddy - Tkinter (card-based) desktop front end

Flow:
1. Setup card: paste text and/or attach scanned pages, pick a mode and a
   reading voice, extract the dictation list.
2. Practice card: listen, write, reveal, move on; chat with the assistant by
   typing or speaking.

Setup (from repo root):

    python -m venv .venv
    source .venv/bin/activate   # or .venv\\Scripts\\activate on Windows
    pip install -e .

Ensure .env contains:
    OPENAI_API_KEY=sk-...

Then run:
    python main.py
"""

import tkinter as tk
from tkinter import ttk, messagebox, filedialog
from typing import Callable, Dict, List, Optional

from dictation_buddy.audio_focus import AudioFocus
from dictation_buddy.client import ServiceClient
from dictation_buddy.config import Settings
from dictation_buddy.dialogue import AssistantDialogueService
from dictation_buddy.extraction import ContentExtractionService
from dictation_buddy.logger import logger
from dictation_buddy.models import Attachment, AudioLanguage, DictationItem, DictationMode, Emotion, Stage
from dictation_buddy.session import PracticeSessionController
from dictation_buddy.setup_flow import SetupFlow
from dictation_buddy.speech_input import SpeechInputAdapter, create_recognition_backend
from dictation_buddy.speech_output import SpeechOutputAdapter, create_local_backend, create_remote_player

logger.banner("Dictation Buddy - Starting Application")

SAMPLE_TEXT = "今天是星期天，天氣晴朗。爸爸帶我去動物園看獅子和老虎。我們還看見了長頸鹿吃樹葉，真有趣！"

MASCOT_FACES = {
    Emotion.IDLE: "🤖",
    Emotion.HAPPY: "🤖🎉",
    Emotion.THINKING: "🤖💭",
    Emotion.SPEAKING: "🤖🔊",
    Emotion.SAD: "🤖💧",
}

ATTACHMENT_TYPES = [
    ("Images and PDFs", "*.png *.jpg *.jpeg *.webp *.gif *.pdf"),
    ("All files", "*.*"),
]


# ---------------------------------------------------------------------------
# Extraction progress
# ---------------------------------------------------------------------------

class ExtractionProgress(ttk.Label):
    """Braille spinner with the mode being extracted and the seconds waited."""

    FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
    TICK_MS = 100

    def __init__(self, parent) -> None:
        super().__init__(parent, font=("Helvetica", 14), foreground="#7bb3ff")
        self._mode: Optional[DictationMode] = None
        self._ticks = 0
        self._after_id = None

    @property
    def running(self) -> bool:
        return self._mode is not None

    def start(self, mode: DictationMode) -> None:
        self._mode = mode
        self._ticks = 0
        self.grid()
        if self._after_id is None:
            self._tick()

    def stop(self) -> None:
        self._mode = None
        if self._after_id is not None:
            self.after_cancel(self._after_id)
            self._after_id = None
        self.grid_remove()

    def _tick(self) -> None:
        frame = self.FRAMES[self._ticks % len(self.FRAMES)]
        seconds = self._ticks * self.TICK_MS // 1000
        self.configure(text=f"{frame} 正在分析{self._mode.label}... {seconds}s")
        self._ticks += 1
        self._after_id = self.after(self.TICK_MS, self._tick)


# ---------------------------------------------------------------------------
# Application window
# ---------------------------------------------------------------------------

class DictationBuddyApp(tk.Tk):
    def __init__(self, settings: Settings) -> None:
        super().__init__()
        logger.ui("Initializing DictationBuddyApp window...")

        self.title("默書小助手 Dictation Buddy")
        window_width, window_height = 1000, 720
        center_x = int(self.winfo_screenwidth() / 2 - window_width / 2)
        center_y = int(self.winfo_screenheight() / 2 - window_height / 2)
        self.geometry(f"{window_width}x{window_height}+{center_x}+{center_y}")
        self.minsize(640, 480)

        self.configure(bg="#1e1e1e")
        style = ttk.Style()
        style.theme_use("clam")
        style.configure("TFrame", background="#1e1e1e")
        style.configure("TLabel", background="#1e1e1e", foreground="#e0e0e0", font=("Helvetica", 15))
        style.configure("TButton", background="#2d2d2d", foreground="#e0e0e0", font=("Helvetica", 14))
        style.map("TButton", background=[("active", "#3d3d3d")])
        style.configure("Accent.TButton", background="#4a6fa5", foreground="#ffffff")
        style.map("Accent.TButton", background=[("active", "#5a7fb5"), ("pressed", "#3a5f95")])
        style.configure("TRadiobutton", background="#1e1e1e", foreground="#e0e0e0", font=("Helvetica", 13))

        # Services live as long as the window
        self.settings = settings
        self.client = ServiceClient(settings)
        self.extraction = ContentExtractionService(self.client)
        self.focus = AudioFocus()
        self.speech_output = SpeechOutputAdapter(
            create_local_backend(), create_remote_player(), self.focus, notify=self.notify,
        )
        self.recognition_backend = create_recognition_backend(self.client)
        self.setup_flow = SetupFlow(
            self.extraction,
            on_ready=self.start_practice,
            notify=self.notify,
            post=self.post,
            on_loading_changed=self._on_loading_changed,
        )
        self.session: Optional[PracticeSessionController] = None

        container = ttk.Frame(self)
        container.pack(fill="both", expand=True)
        container.rowconfigure(0, weight=1)
        container.columnconfigure(0, weight=1)

        self.cards: Dict[str, ttk.Frame] = {}
        for CardClass in (SetupCard, PracticeCard):
            card = CardClass(parent=container, controller=self)
            self.cards[CardClass.__name__] = card
            card.grid(row=0, column=0, sticky="nsew")

        logger.ui("Application initialized successfully")
        self.show_card("SetupCard")

    def show_card(self, name: str) -> None:
        logger.ui_transition("current_card", name)
        self.cards[name].tkraise()

    def post(self, fn: Callable[[], None]) -> None:
        """Run ``fn`` on the Tk main loop."""
        self.after(0, fn)

    def notify(self, message: str) -> None:
        self.post(lambda: messagebox.showinfo("默書小助手", message))

    def _on_loading_changed(self, loading: bool) -> None:
        setup_card: SetupCard = self.cards["SetupCard"]
        setup_card.set_loading(loading)

    # High-level flow methods ----------------------------------------------

    def start_practice(self, items: List[DictationItem], mode: DictationMode, language: AudioLanguage) -> None:
        logger.separator(f"Practice - {mode.value}, {len(items)} items")
        speech_input = SpeechInputAdapter(self.recognition_backend, self.focus, notify=self.notify)
        dialogue = AssistantDialogueService(
            self.client, self.speech_output, speak_replies=self.settings.speak_replies,
        )
        self.session = PracticeSessionController(
            items, mode, language, self.speech_output, speech_input, dialogue, post=self.post,
        )
        practice_card: PracticeCard = self.cards["PracticeCard"]
        practice_card.bind_session(self.session)
        self.show_card("PracticeCard")

    def exit_practice(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None
        self.show_card("SetupCard")


# ---------------------------------------------------------------------------
# Setup card
# ---------------------------------------------------------------------------

class SetupCard(ttk.Frame):
    def __init__(self, parent, controller: DictationBuddyApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.attachments: List[Attachment] = []

        self.columnconfigure(0, weight=1)

        ttk.Label(self, text="📖 默書小助手", font=("Helvetica", 28, "bold"),
                  foreground="#ffffff").grid(row=0, column=0, pady=(30, 5))
        ttk.Label(self, text="上傳圖片或PDF，選擇模式，開始練習！", font=("Helvetica", 13),
                  foreground="#d0d0d0").grid(row=1, column=0, pady=(0, 15))

        # Mode selection
        mode_frame = ttk.Frame(self)
        mode_frame.grid(row=2, column=0, pady=5)
        self.mode_var = tk.StringVar(value=DictationMode.VOCAB.value)
        for column, mode in enumerate(DictationMode):
            ttk.Radiobutton(mode_frame, text=mode.label, value=mode.value,
                            variable=self.mode_var).grid(row=0, column=column, padx=10)

        # Reading voice
        voice_frame = ttk.Frame(self)
        voice_frame.grid(row=3, column=0, pady=5)
        ttk.Label(voice_frame, text="朗讀語言:", font=("Helvetica", 13)).grid(row=0, column=0, padx=(0, 10))
        self.language_var = tk.StringVar(value=AudioLanguage.CANTONESE.value)
        for column, language in enumerate(AudioLanguage, start=1):
            ttk.Radiobutton(voice_frame, text=language.label, value=language.value,
                            variable=self.language_var).grid(row=0, column=column, padx=8)

        # Source text
        self.text_box = tk.Text(self, height=8, wrap="word", font=("Helvetica", 14),
                                bg="#2d2d2d", fg="#e0e0e0", insertbackground="#ffffff")
        self.text_box.grid(row=4, column=0, padx=40, pady=10, sticky="ew")

        # Attachments
        files_frame = ttk.Frame(self)
        files_frame.grid(row=5, column=0, pady=5)
        ttk.Button(files_frame, text="📎 上傳圖片/PDF", command=self._on_attach_clicked).grid(row=0, column=0, padx=5)
        ttk.Button(files_frame, text="✕ 清除文件", command=self._on_clear_files_clicked).grid(row=0, column=1, padx=5)
        ttk.Button(files_frame, text="試用範例", command=self._on_sample_clicked).grid(row=0, column=2, padx=5)
        self.files_label = ttk.Label(self, text="", font=("Helvetica", 11), foreground="#9bc6ff")
        self.files_label.grid(row=6, column=0)

        self.start_button = ttk.Button(self, text="✨ 開始練習 (Start Practice)", style="Accent.TButton",
                                       command=self._on_start_clicked)
        self.start_button.grid(row=7, column=0, pady=(15, 5))

        self.progress = ExtractionProgress(self)
        self.progress.grid(row=8, column=0, pady=(10, 0))
        self.progress.grid_remove()
        self.cancel_button = ttk.Button(self, text="取消 (Cancel)", command=self.controller.setup_flow.cancel)
        self.cancel_button.grid(row=9, column=0, pady=5)
        self.cancel_button.grid_remove()

    def set_loading(self, loading: bool) -> None:
        if loading:
            self.start_button.configure(state="disabled")
            self.progress.start(DictationMode(self.mode_var.get()))
            self.cancel_button.grid()
        else:
            self.start_button.configure(state="normal")
            self.progress.stop()
            self.cancel_button.grid_remove()

    def _on_attach_clicked(self) -> None:
        paths = filedialog.askopenfilenames(title="Select scanned pages", filetypes=ATTACHMENT_TYPES)
        for path in paths:
            try:
                self.attachments.append(Attachment.from_path(path))
            except Exception as e:
                logger.error(f"Could not load attachment {path}: {e}")
                messagebox.showerror("默書小助手", f"無法讀取文件: {path}")
        self._refresh_files()

    def _on_clear_files_clicked(self) -> None:
        self.attachments = []
        self._refresh_files()

    def _on_sample_clicked(self) -> None:
        self.mode_var.set(DictationMode.PARAGRAPH.value)
        self.text_box.delete("1.0", "end")
        self.text_box.insert("1.0", SAMPLE_TEXT)

    def _refresh_files(self) -> None:
        names = ", ".join(a.name for a in self.attachments)
        self.files_label.configure(text=f"已上傳: {names}" if names else "")

    def _on_start_clicked(self) -> None:
        raw_text = self.text_box.get("1.0", "end").strip()
        if not raw_text and not self.attachments:
            messagebox.showinfo("默書小助手", "請輸入文字或上傳文件。(Add some text or files first)")
            return
        self.controller.setup_flow.submit(
            raw_text,
            list(self.attachments),
            DictationMode(self.mode_var.get()),
            AudioLanguage(self.language_var.get()),
        )


# ---------------------------------------------------------------------------
# Practice card
# ---------------------------------------------------------------------------

class PracticeCard(ttk.Frame):
    def __init__(self, parent, controller: DictationBuddyApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.session: Optional[PracticeSessionController] = None

        self.columnconfigure(0, weight=1, uniform="panels")
        self.columnconfigure(1, weight=2, uniform="panels")
        self.rowconfigure(0, weight=1)

        self._build_chat_panel()
        self._build_workspace()

    # Layout -----------------------------------------------------------------

    def _build_chat_panel(self) -> None:
        panel = ttk.Frame(self)
        panel.grid(row=0, column=0, sticky="nsew", padx=10, pady=10)
        panel.columnconfigure(0, weight=1)
        panel.rowconfigure(2, weight=1)

        self.mascot_label = ttk.Label(panel, text=MASCOT_FACES[Emotion.IDLE], font=("Helvetica", 48))
        self.mascot_label.grid(row=0, column=0, pady=(5, 0))
        ttk.Label(panel, text="默書小助手", font=("Helvetica", 16, "bold")).grid(row=1, column=0, pady=(0, 8))

        self.chat_log = tk.Text(panel, wrap="word", state="disabled", font=("Helvetica", 13),
                                bg="#2d2d2d", fg="#e0e0e0", relief="flat")
        self.chat_log.tag_configure("user", foreground="#9bc6ff", justify="right")
        self.chat_log.tag_configure("model", foreground="#e0e0e0", justify="left")
        self.chat_log.grid(row=2, column=0, sticky="nsew")

        input_frame = ttk.Frame(panel)
        input_frame.grid(row=3, column=0, sticky="ew", pady=(8, 0))
        input_frame.columnconfigure(1, weight=1)

        self.lang_button = ttk.Button(input_frame, text="粵", width=3, command=self._on_lang_clicked)
        self.lang_button.grid(row=0, column=0)
        self.chat_var = tk.StringVar()
        self.chat_entry = ttk.Entry(input_frame, textvariable=self.chat_var, font=("Helvetica", 13))
        self.chat_entry.grid(row=0, column=1, sticky="ew", padx=4)
        self.chat_entry.bind("<Return>", lambda event: self._on_send_clicked())
        self.mic_button = ttk.Button(input_frame, text="🎤", width=3, command=self._on_mic_clicked)
        self.mic_button.grid(row=0, column=2)
        ttk.Button(input_frame, text="➤", width=3, command=self._on_send_clicked).grid(row=0, column=3, padx=(4, 0))

        self.lang_label = ttk.Label(panel, text="", font=("Helvetica", 10), foreground="#888888")
        self.lang_label.grid(row=4, column=0, pady=(4, 0))

    def _build_workspace(self) -> None:
        workspace = ttk.Frame(self)
        workspace.grid(row=0, column=1, sticky="nsew", padx=20, pady=10)
        workspace.columnconfigure(0, weight=1)
        workspace.rowconfigure(2, weight=1)

        top = ttk.Frame(workspace)
        top.grid(row=0, column=0, sticky="ew")
        top.columnconfigure(1, weight=1)
        ttk.Button(top, text="← 退出 (Exit)", command=self.controller.exit_practice).grid(row=0, column=0)
        self.progress_label = ttk.Label(top, text="", font=("Helvetica", 12))
        self.progress_label.grid(row=0, column=2, sticky="e")
        self.progress_bar = ttk.Progressbar(top, length=160, mode="determinate")
        self.progress_bar.grid(row=1, column=2, sticky="e")

        self.mode_label = ttk.Label(workspace, text="", font=("Helvetica", 13, "bold"), foreground="#7bb3ff")
        self.mode_label.grid(row=1, column=0, pady=(20, 10))

        card = ttk.Frame(workspace)
        card.grid(row=2, column=0, sticky="nsew")
        card.columnconfigure(0, weight=1)

        self.content_label = ttk.Label(card, text="", font=("Helvetica", 40, "bold"), foreground="#ffffff",
                                       wraplength=560, justify="center", anchor="center")
        self.content_label.grid(row=0, column=0, pady=(30, 10))
        self.sub_content_label = ttk.Label(card, text="", font=("Helvetica", 18), foreground="#7bb3ff")
        self.sub_content_label.grid(row=1, column=0)
        self.meaning_label = ttk.Label(card, text="", font=("Helvetica", 15), foreground="#aaaaaa",
                                       wraplength=560, justify="center")
        self.meaning_label.grid(row=2, column=0, pady=(4, 10))

        self.play_button = ttk.Button(card, text="🔊 播放 (Play)", style="Accent.TButton", command=self._on_play_clicked)
        self.play_button.grid(row=3, column=0, pady=10)
        self.voice_label = ttk.Label(card, text="", font=("Helvetica", 11), foreground="#888888")
        self.voice_label.grid(row=4, column=0)

        actions = ttk.Frame(workspace)
        actions.grid(row=3, column=0, sticky="ew", pady=20)
        actions.columnconfigure(1, weight=1)
        self.reveal_button = ttk.Button(actions, text="👁 查看答案 (Check Answer)", command=self._on_reveal_clicked)
        self.replay_button = ttk.Button(actions, text="⟳", width=4, command=self._on_replay_clicked)
        self.next_button = ttk.Button(actions, text="", style="Accent.TButton", command=self._on_next_clicked)

    # Session binding ----------------------------------------------------------

    def bind_session(self, session: PracticeSessionController) -> None:
        self.session = session
        self.chat_var.set("")
        session.add_listener(lambda s: self.render())
        self.render()

    def render(self) -> None:
        session = self.session
        if session is None:
            return
        state = session.state
        item = session.current_item
        position, total = session.progress

        self.mascot_label.configure(text=MASCOT_FACES[session.emotion])
        self.progress_label.configure(text=f"進度: {position} / {total}")
        self.progress_bar.configure(maximum=total, value=position)
        self.mode_label.configure(text=session.mode.label)
        self.voice_label.configure(text=f"正在使用{session.audio_language.label}朗讀")

        if state.stage is Stage.REVEALED:
            large = session.mode is not DictationMode.PARAGRAPH
            self.content_label.configure(text=item.content, font=("Helvetica", 40 if large else 20, "bold"))
            self.sub_content_label.configure(text=item.sub_content)
            self.meaning_label.configure(text=item.meaning)
            self.play_button.grid_remove()
            self.reveal_button.grid_remove()
            self.replay_button.grid(row=0, column=0, padx=(0, 8))
            self.next_button.configure(text="下一個 (Next) ›" if not session.is_last else "完成 (Finish) ›")
            self.next_button.grid(row=0, column=1, sticky="ew")
        else:
            hidden = item.cloze_content if session.mode is DictationMode.PARAGRAPH and item.cloze_content else "???"
            self.content_label.configure(text=hidden, font=("Helvetica", 20 if hidden != "???" else 40, "bold"))
            self.sub_content_label.configure(text="")
            self.meaning_label.configure(text="")
            self.play_button.grid()
            self.replay_button.grid_remove()
            self.next_button.grid_remove()
            self.reveal_button.grid(row=0, column=0, columnspan=2, sticky="ew")

        self._render_chat(session)

    def _render_chat(self, session: PracticeSessionController) -> None:
        speech_input = session.speech_input
        self.lang_button.configure(text=speech_input.language.short)
        self.lang_label.configure(text=f"語音輸入: {speech_input.language.label}")
        self.mic_button.configure(text="⏹" if speech_input.is_listening else "🎤")
        if speech_input.transcript:
            self.chat_var.set(speech_input.transcript)

        self.chat_log.configure(state="normal")
        self.chat_log.delete("1.0", "end")
        for message in session.dialogue.messages:
            self.chat_log.insert("end", f"{message.text}\n\n", message.role)
        self.chat_log.configure(state="disabled")
        self.chat_log.see("end")

    # Actions ----------------------------------------------------------------

    def _on_play_clicked(self) -> None:
        if self.session:
            self.session.play()

    def _on_replay_clicked(self) -> None:
        if self.session:
            self.session.replay()

    def _on_reveal_clicked(self) -> None:
        if self.session:
            self.session.reveal()

    def _on_next_clicked(self) -> None:
        if self.session:
            self.session.advance()

    def _on_mic_clicked(self) -> None:
        if self.session:
            self.session.toggle_listening()

    def _on_lang_clicked(self) -> None:
        if self.session:
            self.session.cycle_input_language()

    def _on_send_clicked(self) -> None:
        if self.session is None:
            return
        text = self.chat_var.get()
        if self.session.send_message(text) is not None:
            self.chat_var.set("")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    logger.separator("Application Starting")
    app_settings = Settings.from_env()
    logger.enabled = app_settings.debug
    app = DictationBuddyApp(app_settings)
    logger.success("Application window created, entering main loop")
    app.mainloop()
    logger.separator("Application Closed")
