"""
Extraction Prompts.

Prompts sent with each receipt image to the generative model. Both ask for
the visible text first and then a fenced ``json`` block with the keys
companyName, code, senderName, phoneNumber, province and price, which is
the shape the response parser expects.
"""

ENHANCED_EXTRACTION_PROMPT = """أنت مساعد متخصص في استخراج البيانات من صور وصولات الشحن العراقية.

استخرج الحقول التالية من الصورة بدقة:

1. اسم الشركة: شركة الشحن، عادة في أعلى الوصل
2. الكود: رقم الوصل أو رقم التتبع
3. اسم المرسل: اسم الزبون أو المرسل
4. رقم الهاتف: رقم عراقي من 11 رقماً يبدأ بـ 07
5. المحافظة: اسم المحافظة العراقية مثل بغداد أو البصرة أو أربيل
6. السعر: المبلغ بالدينار العراقي كقيمة رقمية

خطوات العمل:
1. انسخ أولاً كل النص الظاهر في الصورة حرفياً، المطبوع والمكتوب بخط اليد.
2. ابحث عن الحقول مثل "رقم الوصل" و"رقم الهاتف" و"اسم الزبون" و"المحافظة".
3. لا تفترض أي معلومة غير موجودة في الصورة.

بعد النص المستخرج اكتب النتيجة بصيغة JSON بالمفاتيح التالية:

```json
{
  "companyName": "",
  "code": "",
  "senderName": "",
  "phoneNumber": "",
  "province": "",
  "price": ""
}
```

إذا لم تجد معلومة اترك قيمتها فارغة. تأكد أن JSON سليم ويمكن تحليله آلياً."""

BASIC_EXTRACTION_PROMPT = """استخرج النص الكامل من هذه الصورة أولاً، ثم نظم البيانات التالية بصيغة JSON:
اسم الشركة، الكود (رقم الوصل)، اسم المرسل، رقم الهاتف (يبدأ غالباً بـ 07)، المحافظة، السعر.

```json
{
  "companyName": "",
  "code": "",
  "senderName": "",
  "phoneNumber": "",
  "province": "",
  "price": ""
}
```"""


def get_extraction_prompt(enhanced: bool = True) -> str:
    """Return the enhanced or the basic extraction prompt."""
    return ENHANCED_EXTRACTION_PROMPT if enhanced else BASIC_EXTRACTION_PROMPT
