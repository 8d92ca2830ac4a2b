from django.shortcuts import render


def home(request):
    return render(request, "core/home.html")


def error_404(request, exception):
    return render(request, "core/error.html", {"status": 404, "message": "Page not found"}, status=404)


def error_500(request):
    return render(request, "core/error.html", {"status": 500, "message": "Server error"}, status=500)
