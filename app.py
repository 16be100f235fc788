"""
TechTutor - AI-generated technical courses

Streamlit application for learning technical topics through generated
chapters, quizzes and concept images, with progress saved per learner.

Usage:
    streamlit run app.py
"""

import asyncio
import logging

import streamlit as st

from techtutor.classroom import (
    CourseStore,
    CourseTree,
    NavigationController,
    ProgressLedger,
)
from techtutor.config import SUPPORTED_LANGUAGES, Settings, configure_logging
from techtutor.errors import GenerationError, TechTutorError, get_user_friendly_message
from techtutor.schemas import (
    ChapterStatus,
    ContentState,
    QuizStatus,
    TranslationState,
    VisualState,
)
from techtutor.services import create_service
from techtutor.session import (
    ContentPipeline,
    QuizEngine,
    ResearchAssistant,
    SessionContext,
    Translator,
    TutorChat,
)


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

st.set_page_config(
    page_title="TechTutor",
    page_icon="🎓",
    layout="wide",
    initial_sidebar_state="expanded",
)


# -----------------------------------------------------------------------------
# Session State Initialization
# -----------------------------------------------------------------------------

def init_session_state():
    """Initialize session state variables."""
    if "settings" not in st.session_state:
        try:
            settings = Settings.from_env()
        except TechTutorError as e:
            st.error(get_user_friendly_message(e))
            st.stop()
        configure_logging(settings.log_level)
        st.session_state.settings = settings

    settings = st.session_state.settings

    # One loop per session so async clients stay bound to the same loop
    if "loop" not in st.session_state:
        st.session_state.loop = asyncio.new_event_loop()

    if "controller" not in st.session_state:
        try:
            service = create_service(settings)
        except TechTutorError as e:
            st.error(get_user_friendly_message(e))
            st.stop()

        store = CourseStore(settings.db_path)
        tree = CourseTree(store.load_topics())
        context = SessionContext(language=settings.language)
        translator = Translator(service, context)

        st.session_state.controller = NavigationController(
            tree=tree,
            ledger=ProgressLedger(tree, store),
            pipeline=ContentPipeline(service, context, translator),
            quiz=QuizEngine(service, context, translator),
            context=context,
            service=service,
            store=store,
        )
        st.session_state.chat = TutorChat(service, context)
        st.session_state.research = ResearchAssistant(service, context)

    if "view" not in st.session_state:
        st.session_state.view = "course"

    if "open_topic" not in st.session_state:
        st.session_state.open_topic = None

    if "confirm_reset" not in st.session_state:
        st.session_state.confirm_reset = False


def run(coro):
    """Run a controller coroutine on the session loop."""
    return st.session_state.loop.run_until_complete(coro)


def t(key: str, **replacements) -> str:
    return st.session_state.controller.context.t(key, **replacements)


# -----------------------------------------------------------------------------
# Sidebar: Language, Progress, Topics
# -----------------------------------------------------------------------------

def render_sidebar():
    """Render the sidebar with language switch, progress and topic list."""
    ctl = st.session_state.controller
    st.sidebar.title(f"🎓 {t('app_title')}")

    codes = list(SUPPORTED_LANGUAGES)
    language = st.sidebar.selectbox(
        t("language_label"),
        codes,
        index=codes.index(ctl.context.language),
        format_func=lambda code: SUPPORTED_LANGUAGES[code],
    )
    if language != ctl.context.language:
        run(ctl.set_language(language))
        st.rerun()

    views = ["course", "research", "assistant"]
    view = st.sidebar.radio(
        t("view_label"),
        views,
        index=views.index(st.session_state.view),
        format_func=lambda name: t(f"view_{name}"),
        horizontal=True,
    )
    if view != st.session_state.view:
        st.session_state.view = view
        st.rerun()

    stats = ctl.get_progress_summary()
    st.sidebar.markdown(t(
        "progress_label",
        completed=stats["completed"],
        total=stats["total_chapters"],
        percent=stats["completion_percent"],
    ))
    st.sidebar.progress(stats["completion_percent"] / 100)

    st.sidebar.divider()
    render_search()

    st.sidebar.divider()
    st.sidebar.subheader(t("topics_title"))
    render_topic_list()
    render_add_topic()

    st.sidebar.divider()
    render_reset_progress()


def render_search():
    ctl = st.session_state.controller
    query = st.sidebar.text_input(
        t("search_placeholder"),
        placeholder=t("search_placeholder"),
        label_visibility="collapsed",
    )
    if not query:
        return

    results = ctl.tree.search(query)
    if not results and len(query.strip()) > 2:
        st.sidebar.caption(t("no_search_results"))
    for result in results:
        label = f"{result.chapter_title} · {result.topic_title}"
        if st.sidebar.button(label, key=f"search_{result.path.key}", use_container_width=True):
            select_chapter(result.path)


def render_topic_list():
    """Render topics as expanders with their chapter tree."""
    ctl = st.session_state.controller
    tree = ctl.get_navigation_tree()

    if not tree:
        st.sidebar.info(t("no_topics"))
        return

    for nav_topic in tree:
        topic_progress = f"({nav_topic.completed_count}/{nav_topic.total_count})"
        expanded = (
            ctl.current_path is not None and ctl.current_path.topic_index == nav_topic.index
        ) or st.session_state.open_topic == nav_topic.index

        with st.sidebar.expander(f"**{nav_topic.title}** {topic_progress}", expanded=expanded):
            for nav_subtopic in nav_topic.subtopics:
                st.markdown(f"*{nav_subtopic.title}* ({nav_subtopic.completed_count}/{nav_subtopic.total_count})")
                for nav_chapter in nav_subtopic.chapters:
                    render_chapter_button(nav_chapter)

            if st.button(t("delete_topic"), key=f"delete_{nav_topic.index}"):
                ctl.remove_topic(nav_topic.index)
                st.session_state.open_topic = None
                st.rerun()


def render_chapter_button(nav_chapter):
    ctl = st.session_state.controller
    indicator = ctl.get_status_indicator(nav_chapter.path)

    if nav_chapter.status == ChapterStatus.COMPLETED:
        style = "color: #388E3C;"
    elif nav_chapter.status == ChapterStatus.CURRENT:
        style = "color: #1976D2; font-weight: bold;"
    else:
        style = ""

    col1, col2 = st.columns([1, 9])
    with col1:
        st.markdown(f"<span style='{style}'>{indicator}</span>", unsafe_allow_html=True)
    with col2:
        title = nav_chapter.title
        if st.button(
            title[:30] + "..." if len(title) > 30 else title,
            key=f"chapter_{nav_chapter.path.key}",
            use_container_width=True,
        ):
            select_chapter(nav_chapter.path)


def render_add_topic():
    ctl = st.session_state.controller
    with st.sidebar.form("add_topic", clear_on_submit=True):
        title = st.text_input(t("add_topic_button"), placeholder=t("add_topic_placeholder"))
        submitted = st.form_submit_button(t("add_topic_button"))

    if submitted and title.strip():
        with st.spinner(t("adding_topic", topicTitle=title.strip())):
            try:
                index = run(ctl.add_topic(title))
            except GenerationError as e:
                logger.warning(f"Topic generation failed: {e}")
                st.sidebar.error(t("add_topic_error"))
                return
        st.session_state.open_topic = index
        st.rerun()


def render_reset_progress():
    ctl = st.session_state.controller
    if not st.session_state.confirm_reset:
        if st.sidebar.button(t("reset_progress")):
            st.session_state.confirm_reset = True
            st.rerun()
        return

    if st.sidebar.button(t("reset_progress_confirm"), type="primary"):
        ctl.reset_progress()
        st.session_state.confirm_reset = False
        st.rerun()


def select_chapter(path):
    """Open a chapter and rerun."""
    st.session_state.view = "course"
    run(st.session_state.controller.go_to(path))
    st.rerun()


# -----------------------------------------------------------------------------
# Main Content: Topic Index
# -----------------------------------------------------------------------------

def back_to_topic_index():
    """Leave the open chapter (recording it if loaded) and show its topic."""
    ctl = st.session_state.controller
    topic_index = ctl.current_path.topic_index
    ctl.close_chapter()
    st.session_state.open_topic = topic_index
    st.rerun()


def render_topic_index(topic_index: int):
    """Render one topic's subtopics and chapters with completion marks."""
    ctl = st.session_state.controller
    if topic_index >= len(ctl.tree):
        st.session_state.open_topic = None
        st.rerun()

    overview = ctl.get_topic_overview(topic_index)

    if st.button(f"← {t('back_to_topics')}"):
        st.session_state.open_topic = None
        st.rerun()

    done = " ✓" if overview.is_complete else ""
    st.title(f"{overview.title}{done}")
    st.caption(f"{overview.completed_count}/{overview.total_count}")

    for nav_subtopic in overview.subtopics:
        done = " ✓" if nav_subtopic.is_complete else ""
        st.subheader(f"{nav_subtopic.title}{done}")
        for nav_chapter in nav_subtopic.chapters:
            indicator = ctl.get_status_indicator(nav_chapter.path)
            if st.button(
                f"{indicator}  {nav_chapter.title}",
                key=f"index_{nav_chapter.path.key}",
                use_container_width=True,
            ):
                select_chapter(nav_chapter.path)


# -----------------------------------------------------------------------------
# Main Content: Chapter View
# -----------------------------------------------------------------------------

def render_chapter_view():
    """Render the open chapter, or the welcome screen."""
    ctl = st.session_state.controller

    if ctl.current_path is None:
        if st.session_state.open_topic is not None:
            render_topic_index(st.session_state.open_topic)
            return
        st.title(t("welcome_title"))
        st.markdown(t("welcome_message"))
        recommended = ctl.get_recommended_path()
        if recommended is not None:
            _, _, chapter_title = ctl.tree.breadcrumb(recommended)
            if st.button(f"▶ {chapter_title}", type="primary"):
                select_chapter(recommended)
        return

    if ctl.quiz.is_active:
        render_quiz_view()
        return

    pipeline = ctl.pipeline
    topic_title, subtopic_title, chapter_title = ctl.tree.breadcrumb(ctl.current_path)
    if st.button(f"← {t('back_to_chapter_list')}"):
        back_to_topic_index()
    st.caption(f"{topic_title} › {subtopic_title}")
    st.title(chapter_title)

    render_navigation_bar()

    if pipeline.state == ContentState.LOADING:
        st.info(t("generating_chapter_content", chapterTitle=chapter_title))
        return

    if pipeline.state == ContentState.FAILED:
        st.error(pipeline.error or t("chapter_generation_error"))
        if st.button(t("retry")):
            with st.spinner(t("generating_chapter_content", chapterTitle=chapter_title)):
                run(ctl.retry())
            st.rerun()
        return

    if pipeline.translation_state == TranslationState.TRANSLATING:
        st.caption(t("translating_chapter_content"))

    st.markdown(pipeline.display_content or "")

    st.divider()
    col1, col2 = st.columns(2)
    with col1:
        if st.button(f"🖼 {t('visualize_concept_button')}", use_container_width=True):
            with st.spinner(t("generating_visual")):
                run(ctl.visualize())
    with col2:
        if st.button(f"📝 {t('test_your_knowledge')}", type="primary", use_container_width=True):
            with st.spinner(t("generating_quiz")):
                run(ctl.start_quiz())
            st.rerun()

    render_visual()


def render_navigation_bar():
    """Render navigation bar with prev/next buttons."""
    ctl = st.session_state.controller
    pos, total = ctl.get_chapter_position(ctl.current_path)

    col1, col2, col3 = st.columns([1, 2, 1])

    with col1:
        if ctl.can_go_prev():
            if st.button(f"← {t('previous')}", use_container_width=True):
                run(ctl.prev())
                st.rerun()

    with col2:
        st.markdown(f"<center>{t('lesson_position', current=pos, total=total)}</center>", unsafe_allow_html=True)

    with col3:
        if ctl.can_go_next():
            if st.button(f"{t('next')} →", use_container_width=True):
                run(ctl.next())
                st.rerun()

    st.divider()


def render_visual():
    pipeline = st.session_state.controller.pipeline
    if pipeline.visual_state == VisualState.READY and pipeline.visual:
        st.subheader(t("visualizer_modal_title"))
        st.image(pipeline.visual.image_bytes)
        if st.button(t("close_visual")):
            pipeline.dismiss_visual()
            st.rerun()
    elif pipeline.visual_state == VisualState.FAILED:
        st.warning(pipeline.visual_error or t("visualizer_error_message"))


# -----------------------------------------------------------------------------
# Quiz View
# -----------------------------------------------------------------------------

def render_quiz_view():
    """Render the quiz for the open chapter."""
    ctl = st.session_state.controller
    quiz = ctl.quiz

    st.title(f"{t('quiz_for')} {quiz.title}")

    if quiz.status == QuizStatus.EMPTY:
        st.warning(t("quiz_generation_error"))
        render_back_to_chapter()
        return

    if quiz.status == QuizStatus.FINISHED:
        score_info = quiz.score_summary()
        st.success(t("quiz_complete"))
        st.markdown(t(
            "your_score",
            score=score_info["correct"],
            total=score_info["total"],
            percent=score_info["percent"],
        ))
        render_back_to_chapter()
        return

    if quiz.status != QuizStatus.IN_PROGRESS:
        st.info(t("generating_quiz"))
        return

    if quiz.translation_state == TranslationState.TRANSLATING:
        st.caption(t("translating_quiz"))

    session = quiz.session
    question = quiz.current_question
    st.markdown(t("question_progress", current=session.current_index + 1, total=quiz.total))
    st.markdown(f"**{question.question}**")

    for option_index, option in enumerate(question.options):
        label = option
        if session.revealed:
            correct_index = quiz.questions[session.current_index].correct_answer_index
            if option_index == correct_index:
                label = f"✓ {option}"
            elif option_index == session.selected_answer:
                label = f"✗ {option}"
        if st.button(
            label,
            key=f"option_{session.current_index}_{option_index}",
            disabled=session.revealed,
            use_container_width=True,
        ):
            quiz.select_answer(option_index)
            st.rerun()

    if session.revealed:
        if session.is_correct:
            st.success(t("correct"))
        else:
            st.error(t("incorrect"))
        st.info(f"**{t('explanation')}:** {question.explanation}")

        is_last = session.current_index + 1 >= quiz.total
        if st.button(t("finish_quiz") if is_last else t("next_question"), type="primary"):
            quiz.advance()
            st.rerun()

    render_back_to_chapter()


def render_back_to_chapter():
    if st.button(f"← {t('back_to_chapter')}"):
        st.session_state.controller.quiz.exit()
        st.rerun()


# -----------------------------------------------------------------------------
# Research and Assistant Views
# -----------------------------------------------------------------------------

def render_research_view():
    """Render grounded web research with its sources."""
    research = st.session_state.research

    st.title(t("research_assistant_title"))
    st.markdown(t("research_assistant_desc"))

    with st.form("research"):
        query = st.text_input(
            t("research_button"),
            placeholder=t("research_placeholder"),
            label_visibility="collapsed",
        )
        submitted = st.form_submit_button(t("research_button"), type="primary")

    if submitted and query.strip():
        with st.spinner(t("researching")):
            run(research.search(query))

    if research.error:
        st.error(research.error)
        return

    if research.result is None:
        return

    st.markdown(research.result.text)
    sources = research.result.web_sources
    if sources:
        st.subheader(t("research_sources_title"))
        for source in sources:
            st.markdown(f"- [{source.title or source.uri}]({source.uri})")


def render_assistant_view():
    """Render the tutor chat."""
    chat = st.session_state.chat

    st.title(t("ai_assistant"))

    col1, col2 = st.columns([3, 1])
    with col1:
        chat.thinking = st.toggle(t("thinking_mode"), value=chat.thinking)
    with col2:
        if st.button(t("clear_chat"), disabled=not chat.messages):
            chat.clear()
            st.rerun()

    for message in chat.messages:
        with st.chat_message("user" if message.role == "user" else "assistant"):
            st.markdown(message.text)

    prompt = st.chat_input(t("ask_me_anything"))
    if prompt and prompt.strip():
        with st.spinner("..."):
            run(chat.send(prompt))
        st.rerun()


# -----------------------------------------------------------------------------
# Main App
# -----------------------------------------------------------------------------

def main():
    """Main application entry point."""
    init_session_state()
    render_sidebar()

    if st.session_state.view == "research":
        render_research_view()
    elif st.session_state.view == "assistant":
        render_assistant_view()
    else:
        render_chapter_view()


if __name__ == "__main__":
    main()
