import streamlit as st
from datetime import date

from natija.ingestion.header_resolver import SCORE1, SCORE2
from natija.lookup.session import LookupSession, LookupState
from natija.result_card import result_card_html
from natija.sample_data import SAMPLE_FILE_NAME, sample_workbook_bytes

# Page config
st.set_page_config(
    page_title="نظام الاستعلام عن النتائج",
    page_icon="🎓",
    layout="centered",
    initial_sidebar_state="expanded"
)

# Right-to-left layout and card styling
st.markdown("""
<style>
    :root {
        --primary-color: #1e3a8a;
        --secondary-color: #3b82f6;
        --accent-color: #10b981;
        --text-dark: #1f2937;
        --text-light: #6b7280;
        --border-color: #e5e7eb;
    }

    html, body, [class*="css"], .stMarkdown, .stSelectbox, .stTextInput, .stDateInput {
        direction: rtl;
        text-align: right;
    }

    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}

    h1 {
        color: var(--primary-color);
        font-weight: 700;
        margin-bottom: 0.5rem;
    }

    .subtitle {
        color: var(--text-light);
        font-size: 1.1rem;
        margin-bottom: 2rem;
        padding-bottom: 1.5rem;
        border-bottom: 2px solid var(--border-color);
    }

    .result-card {
        background-color: white;
        border: 1px solid var(--border-color);
        border-right: 4px solid var(--secondary-color);
        border-radius: 0.75rem;
        padding: 1.5rem;
        margin-bottom: 1rem;
        box-shadow: 0 1px 3px rgba(0,0,0,0.05);
    }

    [data-testid="stMetricValue"] {
        font-size: 2rem;
        font-weight: 700;
        color: var(--primary-color);
    }

    .stButton > button {
        background-color: var(--primary-color);
        color: white;
        border: none;
        border-radius: 0.5rem;
        font-weight: 600;
    }

    [data-testid="stFileUploader"] {
        border: 2px dashed var(--border-color);
        border-radius: 0.75rem;
        padding: 1rem;
    }
</style>
""", unsafe_allow_html=True)

SCORE_LABELS = {SCORE1: "الدرجة 1", SCORE2: "الدرجة 2"}

if "lookup" not in st.session_state:
    st.session_state["lookup"] = LookupSession()
session: LookupSession = st.session_state["lookup"]
generation = session.form_generation

# Header
st.markdown("# 🎓 الاستعلام عن النتائج")
st.markdown('<div class="subtitle">يرجى اختيار الصف واسم الطالب للبدء</div>', unsafe_allow_html=True)

# Sidebar: data source
with st.sidebar:
    st.markdown("## ملف النتائج")
    uploaded_file = st.file_uploader(
        "اختر ملف Excel أو CSV",
        type=['xlsx', 'xls', 'csv'],
        help="الصف الأول يجب أن يحتوي على عناوين الأعمدة (الاسم، المرحله، ...)",
    )
    if uploaded_file is not None and st.session_state.get("loaded_file_id") != uploaded_file.file_id:
        with st.spinner("جاري قراءة الملف..."):
            session.load_file(uploaded_file.getvalue(), uploaded_file.name)
        st.session_state["loaded_file_id"] = uploaded_file.file_id

    if st.button("تحميل بيانات تجريبية", use_container_width=True):
        session.load_file(sample_workbook_bytes(), SAMPLE_FILE_NAME)

    if session.load_error:
        st.error(f"❌ {session.load_error}")

    if session.dataset is not None:
        report = session.dataset.report
        st.success(f"✅ تم تحميل **{report.record_count}** طالب من {report.source_file}")
        with st.expander("📋 تقرير التحميل", expanded=False):
            st.code(report.as_text(), language=None)

    st.markdown("---")
    if st.button("تسجيل خروج", use_container_width=True):
        session.logout()
        st.rerun()

if session.dataset is None:
    st.info("👈 قم بتحميل ملف النتائج من القائمة الجانبية للبدء")
    st.stop()

# Result view
if session.state is LookupState.RESOLVED and session.resolved_record is not None:
    student = session.resolved_record
    st.markdown(result_card_html(student), unsafe_allow_html=True)

    scores = [(label, getattr(student, key)) for key, label in SCORE_LABELS.items()]
    scores = [(label, value) for label, value in scores if value is not None]
    if scores:
        columns = st.columns(len(scores))
        for column, (label, value) in zip(columns, scores):
            with column:
                st.metric(label, value)
    else:
        st.warning("لا توجد درجات مسجلة لهذا الطالب")

    if student.extra:
        with st.expander("بيانات إضافية", expanded=False):
            for header, value in student.extra.items():
                st.markdown(f"**{header}:** {value}")

    if st.button("🔍 بحث عن طالب آخر", use_container_width=True):
        session.search_another()
        st.rerun()
    st.stop()

# Search view
classes = session.classes
class_choice = st.selectbox(
    "الصف الدراسي / المرحلة",
    options=[""] + classes,
    index=([""] + classes).index(session.selected_class) if session.selected_class in classes else 0,
    format_func=lambda c: c or "اختر المرحلة...",
    key=f"class_{generation}",
)
if (class_choice or None) != session.selected_class:
    session.select_class(class_choice)

students = session.students
student_ids = [""] + [s.id for s in students]
names = {s.id: s.name for s in students}
student_choice = st.selectbox(
    "اسم الطالب",
    options=student_ids,
    format_func=lambda sid: names.get(sid, "اختر الطالب..."),
    disabled=not session.selected_class,
    key=f"student_{generation}_{session.selected_class}",
)
if (student_choice or None) != session.selected_student_id:
    session.select_student(student_choice)

if session.state is LookupState.VERIFYING:
    st.markdown("#### 🔒 بيانات التحقق")
    with st.form(key=f"verify_{generation}_{session.selected_student_id}"):
        birth_date = st.date_input(
            "تاريخ الميلاد",
            value=None,
            min_value=date(1990, 1, 1),
            max_value=date.today(),
            format="YYYY-MM-DD",
        )
        phone = st.text_input("رقم الهاتف (المسجل)", placeholder="01xxxxxxxxx")
        submitted = st.form_submit_button("عرض النتيجة", use_container_width=True)

    if submitted:
        if birth_date is None or not phone.strip():
            st.warning("⚠️ يرجى إدخال تاريخ الميلاد ورقم الهاتف")
        else:
            result = session.submit_verification(birth_date.isoformat(), phone)
            if result.accepted:
                st.rerun()

if session.error:
    st.error(f"⚠️ {session.error}")
